"""Weblink ingestion orchestrator.

Consumes ingestion jobs and drives every canonical link through
fetch -> parse/store -> chunk/embed -> content-meta, keeping the per-user
visit records in sync. Every step is idempotent and guarded by a per-URL
distributed lock, so duplicate or concurrent jobs for the same URL are
safe. Job entry points never raise: each failure ends in a status write
or a log line.
"""

import asyncio
import gzip
import json
import logging
import random
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse

from config.settings import PipelineConfig
from indexer.classifier import is_valid_content_meta
from observability.prometheus_metrics import (
    record_artifact_upload,
    record_cache_lookup,
    record_job,
    record_lock_contention,
    record_step,
)
from pipelines.crawler import FetchError
from pipelines.normalizer import normalize_url
from pipelines.tokens import truncate_to_token_length
from services.shared.cache import ContentCache
from services.shared.models import UserWeblink, Weblink
from services.shared.repository import WeblinkRepository
from services.shared.storage import (
    ArtifactStore,
    ArtifactStoreError,
    chunk_key,
    html_key,
    parsed_doc_key,
)
from .state import ChunkStatus, ParseSource, ParseStatus
from .types import (
    CHANNEL_EXTRACT_LINK_META,
    CHANNEL_INDEX_LINK,
    CHANNEL_PROCESS_LINK,
    CHANNEL_PROCESS_LINK_BY_USER,
    ParsedDocument,
    Source,
    WeblinkData,
    WeblinkJobData,
)

logger = logging.getLogger(__name__)

ContentFlow = Callable[[UserWeblink, Weblink, ParsedDocument], Awaitable[Any]]


def _epoch_ms_to_datetime(value: Optional[int]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class WeblinkService:
    """Ingestion and indexing of web links."""

    def __init__(self,
                 repository: WeblinkRepository,
                 artifact_store: ArtifactStore,
                 lock_manager,
                 parser,
                 chunker,
                 embedder,
                 classifier,
                 queue,
                 cache: Optional[ContentCache] = None,
                 config: Optional[PipelineConfig] = None,
                 content_flow: Optional[ContentFlow] = None):
        """
        Args:
            repository: persistence of weblinks, visits, marks and user chunks
            artifact_store: blob storage for html, parsed docs and chunk sets
            lock_manager: distributed lock manager (``acquire(key)``)
            parser: ContentParser (``fetch_and_parse``, ``parse_uploaded``)
            chunker: DocumentChunker
            embedder: EmbeddingManager (``embed_documents``)
            classifier: ContentClassifier (``classify``)
            queue: job queue with ``enqueue_job(channel, payload, delay_seconds=None)``
            cache: process-local content cache
            config: pipeline knobs; defaults apply when omitted
            content_flow: optional downstream hook run for each linked visit
        """
        self.config = config or PipelineConfig()
        self.repository = repository
        self.artifact_store = artifact_store
        self.locks = lock_manager
        self.parser = parser
        self.chunker = chunker
        self.embedder = embedder
        self.classifier = classifier
        self.queue = queue
        self.cache = cache or ContentCache(self.config.content_cache_size)
        self.content_flow = content_flow

    @property
    def parser_version(self) -> str:
        return self.config.parser_version

    # Queue entry points

    async def enqueue_process_task(self, link: WeblinkJobData,
                                   delay_seconds: Optional[float] = None) -> str:
        return await self.queue.enqueue_job(CHANNEL_PROCESS_LINK, link.to_dict(), delay_seconds=delay_seconds)

    async def enqueue_process_by_user_task(self, link: WeblinkJobData,
                                           delay_seconds: Optional[float] = None) -> str:
        return await self.queue.enqueue_job(CHANNEL_PROCESS_LINK_BY_USER, link.to_dict(),
                                            delay_seconds=delay_seconds)

    async def store_links(self, user_id: int, links: List[Dict[str, Any]]) -> List[WeblinkJobData]:
        """Deduplicate a batch of visited links and enqueue one per-user job per canonical URL.

        Within a batch the entry with the latest ``lastVisitTime`` wins; on equal
        or missing timestamps the later entry in the list wins.
        """
        if not links:
            return []

        by_url: Dict[str, WeblinkJobData] = {}
        for raw in links:
            try:
                url = normalize_url(raw.get('url', ''))
            except ValueError as e:
                logger.warning(f"Skipping invalid link {raw.get('url')!r}: {e}")
                continue

            job = WeblinkJobData.from_dict({**raw, 'url': url, 'userId': user_id, 'retryTimes': 0})
            current = by_url.get(url)
            if current is None or (job.last_visit_time or 0) >= (current.last_visit_time or 0):
                by_url[url] = job

        for job in by_url.values():
            await self.enqueue_process_by_user_task(job)

        logger.info(f"Stored {len(by_url)} unique link(s) out of {len(links)} for user {user_id}")
        return list(by_url.values())

    # Lookups

    async def find_weblink(self, url: Optional[str] = None,
                           link_id: Optional[str] = None) -> Optional[Weblink]:
        if url is not None:
            url = normalize_url(url)
        return await self.repository.find_weblink(url=url, link_id=link_id)

    async def get_user_history(self, user_id: int, skip: int = 0, take: int = 20,
                               order: str = 'desc') -> List[UserWeblink]:
        return await self.repository.list_user_weblinks(user_id, skip=skip, take=take, order=order)

    # Reading content

    async def read_weblink_content(self, url: str) -> Optional[WeblinkData]:
        """Return the content of a link: cache, then stored artifacts, then the remote reader.

        Returns None when no source can provide the content.
        """
        try:
            url = normalize_url(url)
        except ValueError as e:
            logger.warning(f"Cannot read content of invalid url {url!r}: {e}")
            return None

        cached = self.cache.get(url)
        record_cache_lookup(cached is not None)
        if cached is not None:
            logger.info(f"In-memory cache hit: {url}")
            return cached

        weblink = await self.repository.find_weblink(url=url)
        if weblink is not None and weblink.state.is_parse_finished():
            data = await self._load_stored_content(weblink)
            if data is not None:
                self.cache.set(url, data)
                return data

        try:
            doc = await self.parser.fetch_and_parse(url)
        except FetchError as e:
            logger.warning(f"Remote read failed for {url}: {e}")
            return None

        data = WeblinkData(html='', doc=doc)
        self.cache.set(url, data)
        return data

    async def _load_stored_content(self, weblink: Weblink) -> Optional[WeblinkData]:
        try:
            if weblink.storage_key:
                html_buf, doc_buf = await asyncio.gather(
                    self.artifact_store.download(weblink.storage_key),
                    self.artifact_store.download(weblink.parsed_doc_storage_key),
                )
                html = html_buf.decode('utf-8', errors='replace')
            else:
                doc_buf = await self.artifact_store.download(weblink.parsed_doc_storage_key)
                html = ''
        except ArtifactStoreError as e:
            logger.warning(f"Stored content unavailable for {weblink.url}: {e}")
            return None

        logger.info(f"Found parsed content in storage for {weblink.url}")
        return WeblinkData(
            html=html,
            doc=ParsedDocument(
                page_content=doc_buf.decode('utf-8'),
                metadata=json.loads(weblink.page_meta or '{}'),
            ),
        )

    async def parse_uploaded(self, link: WeblinkJobData) -> Optional[WeblinkData]:
        """Parse client-uploaded HTML; None (logged) when that is impossible."""
        data = await self.parser.parse_uploaded(link, self.artifact_store)
        if data is not None:
            self.cache.set(link.url, data)
        return data

    async def read_multi_weblinks(self, sources: List[Source]) -> List[ParsedDocument]:
        """Read several links at once, sharing the token budget evenly among them.

        A source carrying selections contributes its selections instead of the
        whole page.
        """
        if not sources:
            return []
        budget_per_source = self.config.token_budget / len(sources)

        async def read_one(source: Source) -> List[ParsedDocument]:
            if source.selections:
                return [
                    ParsedDocument(page_content=selection.content, metadata=dict(source.metadata))
                    for selection in source.selections
                ]
            if not source.url:
                return []
            data = await self.read_weblink_content(source.url)
            if data is None or data.doc is None:
                return []
            return [ParsedDocument(
                page_content=truncate_to_token_length(data.doc.page_content, budget_per_source),
                metadata=data.doc.metadata,
            )]

        results = await asyncio.gather(*(read_one(source) for source in sources))
        return [doc for docs in results for doc in docs]

    # Artifacts

    async def upload_html(self, link: WeblinkJobData, html: str) -> str:
        """Store raw HTML, unless the client already uploaded it."""
        if link.storage_key:
            return link.storage_key
        key = html_key(link.url)
        await self.artifact_store.upload(key, html, content_type='text/html; charset=utf-8')
        record_artifact_upload('html')
        return key

    async def upload_parsed_doc(self, link: WeblinkJobData, doc: ParsedDocument) -> str:
        key = parsed_doc_key(link.url)
        await self.artifact_store.upload(key, doc.page_content, content_type='text/markdown; charset=utf-8')
        record_artifact_upload('docs')
        return key

    async def load_content_chunks(self, key: str) -> Dict[str, Any]:
        raw = await self.artifact_store.download(key)
        return json.loads(gzip.decompress(raw).decode('utf-8'))

    # Lock-guarded steps

    async def update_weblink_storage_key(self, weblink: Weblink, link: WeblinkJobData,
                                         data: WeblinkData) -> Weblink:
        """Upload the parsed document and mark parsing finished."""
        if weblink.state.is_parse_finished():
            return weblink

        lock = await self.locks.acquire(f"weblink:parse:{weblink.url}")
        if lock is None:
            record_lock_contention('parse')
            logger.info(f"Parse lock busy for {weblink.url}, skipping")
            return weblink

        start = time.time()
        async with lock:
            fresh = await self.repository.find_weblink(url=weblink.url)
            if fresh is not None and fresh.state.is_parse_finished():
                return fresh

            try:
                values = {
                    'parse_status': ParseStatus.FINISH.value,
                    'parse_source': (ParseSource.CLIENT_UPLOAD if link.storage_key
                                     else ParseSource.SERVER_CRAWL).value,
                    'last_parse_time': datetime.now(timezone.utc),
                }
                if data.html:
                    values['storage_key'] = await self.upload_html(link, data.html)
                elif link.storage_key:
                    values['storage_key'] = link.storage_key
                values['parsed_doc_storage_key'] = await self.upload_parsed_doc(link, data.doc)

                updated = await self.repository.update_weblink(weblink.id, **values)
                record_step('parse', time.time() - start)
                logger.info(f"Parsed document stored for {weblink.url}")
                return updated
            except Exception as e:
                logger.error(f"Storing parsed document failed for {weblink.url}: {e}")
                record_step('parse', time.time() - start, error=type(e).__name__)
                return await self.repository.update_weblink(
                    weblink.id, parse_status=ParseStatus.FAILED.value
                )

    async def gen_weblink_chunk_embedding(self, weblink: Weblink, doc: ParsedDocument) -> Weblink:
        """Chunk, embed and store the chunk set; recomputed when the engine version changed."""
        if weblink.state.is_chunk_current(self.parser_version):
            logger.info(f"Weblink already indexed: {weblink.url}, skip")
            return weblink

        lock = await self.locks.acquire(f"weblink:index:{weblink.url}")
        if lock is None:
            record_lock_contention('index')
            logger.info(f"Index lock busy for {weblink.url}, skipping")
            return weblink

        start = time.time()
        async with lock:
            fresh = await self.repository.find_weblink(url=weblink.url)
            if fresh is not None and fresh.state.is_chunk_current(self.parser_version):
                return fresh

            logger.info(f"Start to index weblink: {weblink.url}")
            try:
                chunks = self.chunker.chunk_document(doc)
                vectors = await self.embedder.embed_documents([chunk.content for chunk in chunks])
                payload = {
                    'url': weblink.url,
                    'parserVersion': self.parser_version,
                    'chunks': [
                        {
                            'id': chunk.id,
                            'content': chunk.content,
                            'vector': vector,
                            'metadata': chunk.metadata,
                        }
                        for chunk, vector in zip(chunks, vectors)
                    ],
                }
                key = chunk_key(weblink.url, self.parser_version)
                body = gzip.compress(json.dumps(payload).encode('utf-8'))
                await self.artifact_store.upload(key, body, content_type='application/gzip')
                record_artifact_upload('chunks')
                logger.info(f"Uploaded {len(chunks)} chunk(s) for {weblink.url} to {key}")

                updated = await self.repository.update_weblink(
                    weblink.id,
                    chunk_storage_key=key,
                    parser_version=self.parser_version,
                    chunk_status=ChunkStatus.FINISH.value,
                )
                record_step('index', time.time() - start)
                return updated
            except Exception as e:
                logger.error(f"Index weblink failed for {weblink.url}: {e}")
                record_step('index', time.time() - start, error=type(e).__name__)
                return await self.repository.update_weblink(
                    weblink.id, chunk_status=ChunkStatus.FAILED.value
                )

    async def extract_weblink_content_meta(self, weblink: Weblink, doc: ParsedDocument) -> Weblink:
        """Classify the page; invalid results leave the record unchanged."""
        if json.loads(weblink.content_meta or '{}'):
            return weblink

        lock = await self.locks.acquire(f"weblink:content_meta:{weblink.url}")
        if lock is None:
            record_lock_contention('content_meta')
            logger.info(f"Content meta lock busy for {weblink.url}, skipping")
            return weblink

        start = time.time()
        async with lock:
            fresh = await self.repository.find_weblink(url=weblink.url)
            if fresh is not None and json.loads(fresh.content_meta or '{}'):
                return fresh

            logger.info(f"Start to extract content meta for weblink: {weblink.url}")
            try:
                meta = await self.classifier.classify(doc)
            except Exception as e:
                logger.error(f"Content classification failed for {weblink.url}: {e}")
                record_step('content_meta', time.time() - start, error=type(e).__name__)
                return weblink

            if not is_valid_content_meta(meta):
                logger.info(f"Invalid content meta for {weblink.url}: {json.dumps(meta)}")
                return weblink

            updated = await self.repository.update_weblink(weblink.id, content_meta=json.dumps(meta))
            record_step('content_meta', time.time() - start)
            return updated

    # Job handlers

    async def process_link(self, link: WeblinkJobData) -> Optional[Weblink]:
        """Ingest one link. Never raises; failures are recorded on the weblink."""
        try:
            link.url = normalize_url(link.url)
        except ValueError as e:
            logger.error(f"Dropping job with invalid url {link.url!r}: {e}")
            record_job(CHANNEL_PROCESS_LINK, 'invalid')
            return None

        logger.info(f"Process link from queue: {link.url} (retry {link.retry_times})")
        weblink: Optional[Weblink] = None
        try:
            weblink = await self.repository.upsert_weblink(link.url)

            if weblink.state.is_ready(self.parser_version):
                logger.info(f"Weblink ready: {link.url}, skip")
                record_job(CHANNEL_PROCESS_LINK, 'skipped')
                return weblink

            if not weblink.state.is_parse_finished():
                if link.storage_key:
                    data = self.cache.get(link.url) or await self.parse_uploaded(link)
                else:
                    data = await self.read_weblink_content(link.url)

                if data is None or data.doc is None:
                    logger.warning(f"Cannot parse web link content: {link.url}, mark as failed")
                    weblink = await self.repository.mark_failed(link.url)
                    record_job(CHANNEL_PROCESS_LINK, 'failed')
                    await self._schedule_link_retry(link)
                    return weblink

                _, weblink = await asyncio.gather(
                    self.repository.update_weblink(weblink.id, page_meta=json.dumps(data.doc.metadata)),
                    self.update_weblink_storage_key(weblink, link, data),
                )
                if weblink.parse_status == ParseStatus.FAILED.value:
                    record_job(CHANNEL_PROCESS_LINK, 'failed')
                    await self._schedule_link_retry(link)
                    return weblink

            await self._enqueue_follow_ups(weblink, link)
            record_job(CHANNEL_PROCESS_LINK, 'succeeded')
            return weblink

        except Exception as e:
            logger.error(f"Process weblink {link.url} failed: {e}", exc_info=True)
            record_job(CHANNEL_PROCESS_LINK, 'failed')
            try:
                weblink = await self.repository.mark_failed(link.url)
                await self._schedule_link_retry(link)
            except Exception as mark_error:
                logger.error(f"Could not record failure for {link.url}: {mark_error}")
            return weblink

    async def _enqueue_follow_ups(self, weblink: Weblink, link: WeblinkJobData) -> None:
        """Trigger the chunk and content-meta steps that are still outstanding."""
        if not weblink.state.is_parse_finished():
            return
        follow_up = WeblinkJobData(url=weblink.url, user_id=link.user_id)
        if not weblink.state.is_chunk_current(self.parser_version):
            await self.queue.enqueue_job(CHANNEL_INDEX_LINK, follow_up.to_dict())
        if not json.loads(weblink.content_meta or '{}'):
            await self.queue.enqueue_job(CHANNEL_EXTRACT_LINK_META, follow_up.to_dict())

    def _link_retry_delay(self, attempt: int) -> float:
        """Exponential backoff delay with jitter."""
        base_delay = self.config.link_retry_base_delay_seconds * (2 ** attempt)
        jitter = random.uniform(0.1, 0.3) * base_delay
        return min(base_delay + jitter, self.config.link_retry_max_delay_seconds)

    async def _schedule_link_retry(self, link: WeblinkJobData) -> None:
        if link.retry_times >= self.config.link_retry_limit:
            return
        delay = self._link_retry_delay(link.retry_times)
        logger.info(f"Retrying {link.url} in {delay:.1f}s (attempt {link.retry_times + 1})")
        await self.enqueue_process_task(replace(link, retry_times=link.retry_times + 1), delay_seconds=delay)

    async def _load_parsed_weblink(self, link: WeblinkJobData):
        """Weblink plus its document for the follow-up steps; (None, None) when not parsed."""
        url = normalize_url(link.url)
        weblink = await self.repository.find_weblink(url=url)
        if weblink is None or not weblink.state.is_parse_finished():
            logger.warning(f"Weblink {url} is not parsed yet, skipping follow-up step")
            return None, None
        data = await self.read_weblink_content(url)
        if data is None or data.doc is None:
            logger.warning(f"Document of {url} unavailable, skipping follow-up step")
            return weblink, None
        return weblink, data.doc

    async def index_link(self, link: WeblinkJobData) -> Optional[Weblink]:
        """Chunk/embedding step as a standalone job."""
        try:
            weblink, doc = await self._load_parsed_weblink(link)
            if doc is None:
                record_job(CHANNEL_INDEX_LINK, 'skipped')
                return weblink
            weblink = await self.gen_weblink_chunk_embedding(weblink, doc)
            record_job(CHANNEL_INDEX_LINK, 'succeeded' if weblink.chunk_status == ChunkStatus.FINISH.value
                       else 'failed')
            return weblink
        except Exception as e:
            logger.error(f"Index job for {link.url} failed: {e}", exc_info=True)
            record_job(CHANNEL_INDEX_LINK, 'failed')
            return None

    async def extract_link_meta(self, link: WeblinkJobData) -> Optional[Weblink]:
        """Content-meta step as a standalone job."""
        try:
            weblink, doc = await self._load_parsed_weblink(link)
            if doc is None:
                record_job(CHANNEL_EXTRACT_LINK_META, 'skipped')
                return weblink
            weblink = await self.extract_weblink_content_meta(weblink, doc)
            record_job(CHANNEL_EXTRACT_LINK_META, 'succeeded')
            return weblink
        except Exception as e:
            logger.error(f"Content meta job for {link.url} failed: {e}", exc_info=True)
            record_job(CHANNEL_EXTRACT_LINK_META, 'failed')
            return None

    async def process_link_by_user(self, link: WeblinkJobData) -> Optional[UserWeblink]:
        """Link a ready weblink to the visiting user, retrying until the link is ready."""
        if not link.user_id:
            logger.warning(f"Drop job due to missing user id: {link.url}")
            record_job(CHANNEL_PROCESS_LINK_BY_USER, 'dropped')
            return None

        if link.retry_times >= self.config.user_retry_limit:
            logger.error(f"processLinkByUser: retry times exceed limit for {link.url} "
                         f"(user {link.user_id}, {link.retry_times} attempts)")
            record_job(CHANNEL_PROCESS_LINK_BY_USER, 'dropped')
            return None

        try:
            link.url = normalize_url(link.url)
            weblink = await self.repository.find_weblink(url=link.url)

            if weblink is None or not weblink.state.is_ready(self.parser_version):
                await self.enqueue_process_task(replace(link, retry_times=0))
                await self.enqueue_process_by_user_task(
                    replace(link, retry_times=link.retry_times + 1),
                    delay_seconds=self.config.user_retry_delay_seconds,
                )
                record_job(CHANNEL_PROCESS_LINK_BY_USER, 'retried')
                return None

            data = await self.read_weblink_content(weblink.url)
            if data is None or data.doc is None:
                logger.warning(f"Doc is empty for {weblink.url}, skip")
                record_job(CHANNEL_PROCESS_LINK_BY_USER, 'skipped')
                return None

            visit = await self.update_user_weblink(link, weblink)
            await asyncio.gather(
                self.save_chunk_embeddings_for_user(link.user_id, [weblink.url]),
                self._run_content_flow(visit, weblink, data.doc),
            )
            record_job(CHANNEL_PROCESS_LINK_BY_USER, 'succeeded')
            return visit

        except Exception as e:
            logger.error(f"Process link {link.url} for user {link.user_id} failed: {e}", exc_info=True)
            record_job(CHANNEL_PROCESS_LINK_BY_USER, 'failed')
            return None

    async def _run_content_flow(self, visit: UserWeblink, weblink: Weblink, doc: ParsedDocument) -> None:
        if self.content_flow is None:
            return
        try:
            await self.content_flow(visit, weblink, doc)
        except Exception as e:
            logger.error(f"Content flow failed for {weblink.url}: {e}")

    # Per-user records

    async def update_user_weblink(self, link: WeblinkJobData, weblink: Weblink) -> Optional[UserWeblink]:
        """Record a visit: created on first visit, counters incremented afterwards."""
        if not link.user_id:
            logger.info(f"Drop visit due to missing user id: {link.url}")
            return None
        return await self.repository.upsert_user_weblink(
            user_id=link.user_id,
            url=weblink.url,
            weblink_id=weblink.id,
            last_visit_time=_epoch_ms_to_datetime(link.last_visit_time),
            visit_count=link.visit_count or 1,
            read_time=link.read_time or 0,
            origin=link.origin,
            origin_page_url=link.origin_page_url,
            origin_page_title=link.origin_page_title,
            origin_page_description=link.origin_page_description,
        )

    async def save_chunk_embeddings_for_user(self, user_id: int, urls: List[str]) -> int:
        """Copy the embedded chunks of each link into the user's chunk store."""
        weblinks = await self.repository.find_weblinks_by_urls(urls)
        saved = 0
        for weblink in weblinks:
            if not weblink.chunk_storage_key:
                logger.warning(f"No chunk artifact for {weblink.url}, skip saving for user {user_id}")
                continue
            try:
                content = await self.load_content_chunks(weblink.chunk_storage_key)
            except (ArtifactStoreError, OSError, ValueError) as e:
                logger.error(f"Cannot load chunks {weblink.chunk_storage_key}: {e}")
                continue
            saved += await self.repository.save_user_chunks(
                user_id, weblink.url, content.get('chunks', []),
                parser_version=content.get('parserVersion'),
            )

        logger.info(f"Saved {saved} chunk(s) for user {user_id}, urls: {[w.url for w in weblinks]}")
        return saved

    async def save_weblink_user_marks(self, user_id: int, sources: List[Source],
                                      extension_version: str = '') -> int:
        """Persist the selections a user made on known weblinks."""
        with_selections = [source for source in sources if source.selections and source.url]
        if not with_selections:
            return 0

        urls = {}
        for source in with_selections:
            try:
                urls[source.url] = normalize_url(source.url)
            except ValueError:
                logger.warning(f"Ignoring marks on invalid url {source.url!r}")
        weblinks = await self.repository.find_weblinks_by_urls(set(urls.values()))
        weblink_ids = {weblink.url: weblink.id for weblink in weblinks}

        marks = []
        for source in with_selections:
            canonical = urls.get(source.url)
            if canonical not in weblink_ids:
                continue
            for selection in source.selections:
                marks.append({
                    'user_id': user_id,
                    'weblink_id': weblink_ids[canonical],
                    'link_host': urlparse(canonical).hostname or '',
                    'selector': selection.x_path or '',
                    'mark_type': '',
                    'extension_version': extension_version,
                })
        return await self.repository.create_user_marks(marks)

    async def update_weblink_summary(self, url: str, answer: str,
                                     related_questions: Optional[List[str]] = None) -> Optional[Weblink]:
        return await self.repository.update_weblink_by_url(
            normalize_url(url),
            summary=answer,
            related_questions=related_questions or [],
        )
