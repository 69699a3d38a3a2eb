"""
Logging setup shared by the CLI and the API
"""
import logging
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that log every HTTP request at INFO
NOISY_LOGGERS = ("opensearch", "urllib3", "httpx", "openai", "aiohttp.access")


def configure_logging(level: Union[int, str] = logging.INFO, quiet_clients: bool = True) -> None:
    """
    Configure root logging with the project-wide format

    Args:
        level: Log level name or number
        quiet_clients: Raise third-party client loggers to WARNING
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    if quiet_clients:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def truncate_for_log(text: Optional[str], limit: int = 50) -> str:
    """Shorten user text for log lines"""
    if not text:
        return ""
    return text if len(text) <= limit else f"{text[:limit]}..."
