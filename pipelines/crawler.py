"""Remote page reader for linkfoundry.

Fetches a URL through a remote reader/extraction service that returns
the page as clean text plus title and published time.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from config.settings import ReaderConfig

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Remote fetch failed or returned no extractable content."""

    def __init__(self, url: str, reason: str, status_code: int = 0):
        super().__init__(f"fetch {url} failed: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


@dataclass
class ReaderResult:
    """Content returned by the remote reader for one URL."""
    url: str
    content: str
    title: Optional[str] = None
    published_time: Optional[str] = None
    response_time: Optional[float] = None
    retry_count: int = 0


class RemoteReader:
    """Asynchronous client of the remote reader service with retry/backoff."""

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(self, config: Optional[ReaderConfig] = None):
        self.config = config or ReaderConfig()
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            headers = {'Accept': 'application/json'}
            if self.config.api_key:
                headers['Authorization'] = f"Bearer {self.config.api_key}"
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
                headers=headers,
            )
        return self.session

    async def close(self):
        """Close the reader session."""
        if self.session:
            await self.session.close()
            self.session = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        base_delay = self.config.retry_delay * (2 ** attempt)
        jitter = random.uniform(0.1, 0.3) * base_delay
        return min(base_delay + jitter, self.config.max_retry_delay)

    def _reader_url(self, url: str) -> str:
        return f"{self.config.base_url}/{url}"

    async def fetch(self, url: str) -> ReaderResult:
        """Fetch one URL through the reader.

        Raises:
            FetchError: on non-retryable errors, exhausted retries, or empty content
        """
        session = await self._ensure_session()
        start_time = time.time()
        last_error = "unknown error"
        last_status = 0

        for attempt in range(self.config.max_retries + 1):
            try:
                logger.debug(f"Reading {url} (attempt {attempt + 1}/{self.config.max_retries + 1})")
                async with session.get(self._reader_url(url)) as response:
                    last_status = response.status
                    if response.status in self.RETRYABLE_STATUS_CODES and attempt < self.config.max_retries:
                        delay = self._calculate_retry_delay(attempt)
                        logger.warning(f"Retryable status {response.status} for {url}, retrying in {delay:.2f}s")
                        await asyncio.sleep(delay)
                        continue
                    if response.status != 200:
                        raise FetchError(url, f"reader returned status {response.status}", response.status)

                    payload = await response.json(content_type=None)

                data = (payload or {}).get('data') or {}
                content = (data.get('content') or '').strip()
                if not content:
                    raise FetchError(url, "no extractable content", last_status)

                return ReaderResult(
                    url=url,
                    content=content,
                    title=data.get('title') or None,
                    published_time=data.get('publishedTime') or None,
                    response_time=time.time() - start_time,
                    retry_count=attempt,
                )

            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as e:
                last_error = str(e) or type(e).__name__
                if attempt < self.config.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(f"Error reading {url}: {last_error}, retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)
                    continue
            except aiohttp.ClientError as e:
                raise FetchError(url, f"client error: {e}") from e
            except ValueError as e:
                raise FetchError(url, f"invalid reader payload: {e}") from e

        raise FetchError(url, f"giving up after {self.config.max_retries + 1} attempts: {last_error}", last_status)
