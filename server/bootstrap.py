"""Wiring of the weblink service from settings."""

import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis

from config.database import DatabaseFactory
from config.settings import IngestionSettings
from indexer.classifier import ContentClassifier
from indexer.embeddings import EmbeddingManager
from pipelines.chunker import DocumentChunker
from pipelines.crawler import RemoteReader
from pipelines.parser import ContentParser
from services.shared.cache import ContentCache
from services.shared.locks import LockManager
from services.shared.repository import WeblinkRepository
from services.shared.storage import ArtifactStore
from services.weblink.service import ContentFlow, WeblinkService
from .job_handlers import register_weblink_handlers
from .jobs import JobManager

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """The service plus the resources that must be closed on shutdown."""
    service: WeblinkService
    database: DatabaseFactory
    redis: aioredis.Redis
    reader: RemoteReader
    job_manager: JobManager

    async def close(self) -> None:
        await self.job_manager.shutdown()
        await self.reader.close()
        await self.redis.aclose()
        self.database.close()


def build_weblink_service(settings: IngestionSettings, job_manager: JobManager,
                          content_flow: Optional[ContentFlow] = None) -> ServiceContext:
    """Create every collaborator of the service and register the job handlers."""
    database = DatabaseFactory(settings.database)
    database.initialize()

    redis_client = aioredis.from_url(settings.redis.url, decode_responses=True)
    artifact_store = ArtifactStore(settings.storage)
    artifact_store.ensure_bucket()

    reader = RemoteReader(settings.reader)
    pipeline = settings.pipeline

    service = WeblinkService(
        repository=WeblinkRepository(database.session_factory()),
        artifact_store=artifact_store,
        lock_manager=LockManager(redis_client, lease_seconds=pipeline.lock_lease_seconds, prefix="lock:"),
        parser=ContentParser(reader),
        chunker=DocumentChunker(),
        embedder=EmbeddingManager(pipeline.embedding_model),
        classifier=ContentClassifier(api_key=settings.openai_api_key or None, model=pipeline.classifier_model),
        queue=job_manager,
        cache=ContentCache(pipeline.content_cache_size),
        config=pipeline,
        content_flow=content_flow,
    )

    job_manager.configure(
        settings.redis.url,
        record_ttl=settings.redis.job_record_ttl,
        poll_interval=settings.redis.poll_interval,
        visibility_timeout=settings.redis.visibility_timeout,
    )
    register_weblink_handlers(job_manager, service)
    logger.info(f"Weblink service ready (parser version {pipeline.parser_version})")

    return ServiceContext(
        service=service,
        database=database,
        redis=redis_client,
        reader=reader,
        job_manager=job_manager,
    )
