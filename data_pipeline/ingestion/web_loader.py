"""
Web Page Loading and Text Extraction
Fetches HTML pages over HTTP and reduces them to plain text with provenance
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Sequence, Tuple

import aiohttp
from bs4 import BeautifulSoup

from core.exceptions import DocumentFetchError
from data_pipeline.chunking.models import SourceDocument, ORIGINAL_URL_KEY, SOURCE_KEY

logger = logging.getLogger(__name__)

USER_AGENT = "multivector-rag/1.0"

# Elements whose text never belongs to the page content
NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "svg"]


@dataclass
class LoadResult:
    """Documents loaded from a set of URLs plus the URLs that were skipped"""
    documents: List[SourceDocument] = field(default_factory=list)
    failed_urls: Dict[str, str] = field(default_factory=dict)  # url -> reason

    @property
    def loaded_urls(self) -> List[str]:
        return [doc.original_url for doc in self.documents]


def extract_text(html: str) -> Tuple[str, Optional[str]]:
    """
    Extract visible body text and the page title from HTML

    Returns:
        (text, title) where title is None when the page has none
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None

    for element in soup(NON_CONTENT_TAGS):
        element.decompose()

    root = soup.body or soup
    text = root.get_text(separator="\n", strip=True)

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)

    return text, title or None


class WebPageLoader:
    """
    Async web page loader

    Use as an async context manager to share one HTTP session across loads;
    load_many() opens a session for the duration of the call when none is open.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_concurrent: int = 5,
        user_agent: str = USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")

        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_concurrent = max_concurrent
        self.headers = {"User-Agent": user_agent}
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout, headers=self.headers)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def load(self, url: str) -> List[SourceDocument]:
        """
        Fetch one URL and convert it to a source document

        Raises:
            DocumentFetchError: Network failure, timeout or non-success status
        """
        if not self.session:
            raise RuntimeError("WebPageLoader must be used as async context manager")

        try:
            async with self.session.get(url, timeout=self.timeout, headers=self.headers) as response:
                if response.status >= 400:
                    raise DocumentFetchError(url, f"HTTP {response.status}")
                html = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DocumentFetchError(url, str(e) or type(e).__name__) from e

        text, title = extract_text(html)
        if not text:
            logger.warning(f"No text content found at {url}")
            return []

        logger.debug(f"Loaded {len(text)} chars from {url}")

        return [SourceDocument(
            text=text,
            original_url=url,
            title=title,
            metadata={ORIGINAL_URL_KEY: url, SOURCE_KEY: url}
        )]

    async def load_many(self, urls: Sequence[str]) -> LoadResult:
        """
        Fetch several URLs concurrently

        Failed URLs are recorded in the result and do not stop the others.
        Duplicate URLs are fetched once.
        """
        if self.session is None:
            async with self:
                return await self._load_all(urls)
        return await self._load_all(urls)

    async def _load_all(self, urls: Sequence[str]) -> LoadResult:
        unique_urls = list(dict.fromkeys(urls))
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def load_with_semaphore(url: str):
            async with semaphore:
                return await self.load(url)

        outcomes = await asyncio.gather(
            *(load_with_semaphore(url) for url in unique_urls),
            return_exceptions=True
        )

        result = LoadResult()
        for url, outcome in zip(unique_urls, outcomes):
            if isinstance(outcome, DocumentFetchError):
                logger.warning(f"Skipping {url}: {outcome.reason}")
                result.failed_urls[url] = outcome.reason
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected error loading {url}: {outcome}")
                result.failed_urls[url] = str(outcome) or type(outcome).__name__
            else:
                result.documents.extend(outcome)

        logger.info(
            f"Loaded {len(result.documents)} documents from {len(unique_urls)} URLs "
            f"({len(result.failed_urls)} failed)"
        )
        return result
