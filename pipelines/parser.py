"""HTML to Markdown parsing for ingested pages.

Two ways of obtaining a parsed document: fetch through the remote reader,
or convert HTML the client already uploaded to the artifact store.
"""

import asyncio
import logging
from typing import Optional, Tuple

from bs4 import BeautifulSoup
from trafilatura import extract

from services.shared.storage import ArtifactStore, ArtifactStoreError
from services.weblink.types import ParsedDocument, WeblinkData, WeblinkJobData
from .crawler import FetchError, RemoteReader

logger = logging.getLogger(__name__)

# Below this the extractor probably dropped the main content
MIN_MARKDOWN_CHARS = 40


def html_to_markdown(html: str) -> str:
    """Convert an HTML page into Markdown, falling back to plain text."""
    md = extract(html, output_format="markdown", include_links=True, include_tables=True)
    if not md or len(md.strip()) < MIN_MARKDOWN_CHARS:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        md = soup.get_text("\n")
    lines = (line.rstrip() for line in md.splitlines())
    return "\n".join(line for line in lines if line.strip()).strip()


def extract_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title and soup.title.string:
        return soup.title.string.strip() or None
    heading = soup.find("h1")
    if heading:
        return heading.get_text().strip() or None
    return None


class ContentParser:
    """Fetch/parse engine producing ``ParsedDocument`` objects."""

    def __init__(self, reader: RemoteReader):
        self.reader = reader

    async def fetch_and_parse(self, url: str) -> ParsedDocument:
        """Retrieve a page through the remote reader.

        Raises:
            FetchError: when the reader fails or returns nothing usable
        """
        result = await self.reader.fetch(url)
        logger.info(f"Fetched {url} via reader in {result.response_time or 0:.2f}s")
        return ParsedDocument(
            page_content=result.content,
            metadata={
                'title': result.title or '',
                'source': url,
                'publishedTime': result.published_time or '',
            },
        )

    async def parse_uploaded(self, link: WeblinkJobData,
                             artifact_store: ArtifactStore) -> Optional[WeblinkData]:
        """Convert client-uploaded HTML into a document.

        Returns None (and logs) when the upload cannot be read or converted.
        HTML conversion runs in the default executor.
        """
        if not link.storage_key:
            return None
        try:
            raw = await artifact_store.download(link.storage_key)
            html = raw.decode('utf-8', errors='replace')
            content, title = await asyncio.get_running_loop().run_in_executor(None, _convert, html)
        except ArtifactStoreError as e:
            logger.error(f"Failed to read uploaded content {link.storage_key} for {link.url}: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to parse uploaded content {link.storage_key} for {link.url}: {e}",
                         exc_info=True)
            return None

        if not content:
            logger.warning(f"Uploaded content {link.storage_key} for {link.url} has no text")
            return None

        doc = ParsedDocument(
            page_content=content,
            metadata={
                'title': link.title or title or '',
                'source': link.url,
            },
        )
        return WeblinkData(html=html, doc=doc)


def _convert(html: str) -> Tuple[str, Optional[str]]:
    return html_to_markdown(html), extract_title(html)


__all__ = ['ContentParser', 'FetchError', 'html_to_markdown', 'extract_title']
