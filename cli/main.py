"""
Command line entrypoint: ingest web pages and query the index
"""
import asyncio
import json
import logging
from typing import Tuple

import click
from dotenv import load_dotenv

from core.config import RAGConfig
from core.exceptions import ConfigurationError, RetrievalError
from core.factory import Components, create_components, prepare_store
from core.logging_config import configure_logging

_log = logging.getLogger(__name__)

# Exit codes
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def _build_components(ctx: click.Context) -> Components:
    config: RAGConfig = ctx.obj["config"]
    try:
        return create_components(config)
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        ctx.exit(EXIT_CONFIGURATION)


async def _run_ingest(components: Components, urls: Tuple[str, ...]):
    try:
        await prepare_store(components)
        result = await components.ingestion.ingest(list(urls))
        if result.failed_chunk_ids:
            result = await components.ingestion.retry_failed(result)
        return result
    finally:
        await components.close()


async def _run_query(components: Components, text: str, k_parents: int):
    try:
        return await components.retrieval.query(text, k_parents=k_parents)
    finally:
        await components.close()


@click.group()
@click.option("--env-file", type=click.Path(dir_okay=False), default=None,
              help="Read environment variables from this file (default: .env).")
@click.option("--log-level", default=None, help="Override RAG_LOG_LEVEL.")
@click.pass_context
def main(ctx: click.Context, env_file: str, log_level: str) -> None:
    """Multi-vector parent/child retrieval over web pages."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    try:
        config = RAGConfig.from_env()
    except ValueError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        ctx.exit(EXIT_CONFIGURATION)

    configure_logging(log_level or config.log_level)
    ctx.obj = {"config": config}


@main.command("ingest")
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def ingest(ctx: click.Context, urls: Tuple[str, ...]) -> None:
    """Load URLS, split them into parent and child chunks and index both."""
    components = _build_components(ctx)

    _log.info("Ingesting %d URLs", len(urls))
    result = asyncio.run(_run_ingest(components, urls))

    click.echo(json.dumps(result.to_dict(), indent=2))

    for url, reason in result.failed_urls.items():
        click.echo(f"Skipped {url}: {reason}", err=True)

    if result.status == "error":
        ctx.exit(EXIT_FAILURE)


@main.command("query")
@click.argument("text")
@click.option("--k-parents", default=None, type=click.IntRange(min=1),
              help="Parent passages to compress (default: RAG_K_PARENTS or 3).")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON.")
@click.pass_context
def query(ctx: click.Context, text: str, k_parents: int, as_json: bool) -> None:
    """Retrieve the passages relevant to TEXT."""
    if not text.strip():
        raise click.BadParameter("query must not be empty", param_hint="'TEXT'")

    components = _build_components(ctx)
    if k_parents is None:
        k_parents = ctx.obj["config"].k_parents

    try:
        result = asyncio.run(_run_query(components, text, k_parents))
    except RetrievalError as exc:
        click.echo(f"Retrieval failed: {exc}", err=True)
        ctx.exit(EXIT_FAILURE)
    except ValueError as exc:
        click.echo(f"Invalid query: {exc}", err=True)
        ctx.exit(EXIT_FAILURE)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(f"Query: {result.query}")
    click.echo(f"Status: {result.status.value}")
    for i, passage in enumerate(result.passages, start=1):
        click.echo(f"\n[{i}] {passage.original_url} ({passage.verdict.value}, score {passage.score:.3f})")
        click.echo(passage.text)


if __name__ == "__main__":
    main()
