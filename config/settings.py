"""Runtime settings for the weblink ingestion pipeline.

All values come from environment variables with development defaults.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .database import DatabaseConfig


class RedisConfig(BaseModel):
    """Redis connection used for locks, job records and the job queue."""
    url: str = "redis://localhost:6379/0"
    job_record_ttl: int = Field(default=86400 * 7, description="Job record TTL in seconds")
    poll_interval: float = Field(default=1.0, description="Queue poll timeout and delayed-job promotion period")
    visibility_timeout: int = Field(default=900, description="Seconds before an unacknowledged job is requeued")
    worker_concurrency: int = Field(default=4, description="Concurrent job consumers per worker process")

    @classmethod
    def from_env(cls) -> 'RedisConfig':
        return cls(
            url=os.getenv('REDIS_URL', 'redis://localhost:6379/0'),
            job_record_ttl=int(os.getenv('JOB_RECORD_TTL', str(86400 * 7))),
            poll_interval=float(os.getenv('JOB_POLL_INTERVAL', '1')),
            visibility_timeout=int(os.getenv('JOB_VISIBILITY_TIMEOUT', '900')),
            worker_concurrency=int(os.getenv('WORKER_CONCURRENCY', '4')),
        )


class StorageConfig(BaseModel):
    """MinIO / S3-compatible artifact storage."""
    endpoint: str = "localhost:9000"
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"
    bucket: str = "weblinks"
    secure: bool = False

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        return cls(
            endpoint=os.getenv('MINIO_ENDPOINT', 'localhost:9000'),
            access_key=os.getenv('MINIO_ACCESS_KEY', 'minioadmin'),
            secret_key=os.getenv('MINIO_SECRET_KEY', 'minioadmin'),
            bucket=os.getenv('MINIO_BUCKET', 'weblinks'),
            secure=os.getenv('MINIO_SECURE', 'false').lower() == 'true',
        )


class ReaderConfig(BaseModel):
    """Remote fetch/extraction service (a reader that returns page content as JSON)."""
    base_url: str = "https://r.jina.ai"
    api_key: Optional[str] = None
    request_timeout: int = 30
    max_retries: int = 2
    retry_delay: float = 1.0
    max_retry_delay: float = 30.0

    @classmethod
    def from_env(cls) -> 'ReaderConfig':
        return cls(
            base_url=os.getenv('READER_BASE_URL', 'https://r.jina.ai').rstrip('/'),
            api_key=os.getenv('READER_API_KEY') or None,
            request_timeout=int(os.getenv('READER_TIMEOUT', '30')),
            max_retries=int(os.getenv('READER_MAX_RETRIES', '2')),
        )


class PipelineConfig(BaseModel):
    """Knobs of the ingestion orchestrator."""
    parser_version: str = Field(default="20240424", description="Current parsing/chunking engine version")
    content_cache_size: int = Field(default=1000, description="Max entries in the in-process content cache")
    lock_lease_seconds: int = Field(default=60, description="Lease of per-URL locks")
    user_retry_limit: int = Field(default=20, description="Retry ceiling of per-user linkage jobs")
    user_retry_delay_seconds: float = Field(default=2.0, description="Backoff before a per-user retry")
    token_budget: int = Field(default=12000, description="Total token budget for multi-link reads")
    link_retry_limit: int = Field(default=0, description="Automatic retries of failed plain ingestion jobs (0 disables)")
    link_retry_base_delay_seconds: float = 5.0
    link_retry_max_delay_seconds: float = 300.0
    embedding_model: str = "all-MiniLM-L6-v2"
    classifier_model: str = "gpt-4o-mini"

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        return cls(
            parser_version=os.getenv('PARSER_VERSION', '20240424'),
            content_cache_size=int(os.getenv('CONTENT_CACHE_SIZE', '1000')),
            lock_lease_seconds=int(os.getenv('LOCK_LEASE_SECONDS', '60')),
            user_retry_limit=int(os.getenv('USER_RETRY_LIMIT', '20')),
            user_retry_delay_seconds=float(os.getenv('USER_RETRY_DELAY_SECONDS', '2')),
            token_budget=int(os.getenv('TOKEN_BUDGET', '12000')),
            link_retry_limit=int(os.getenv('LINK_RETRY_LIMIT', '0')),
            link_retry_base_delay_seconds=float(os.getenv('LINK_RETRY_BASE_DELAY_SECONDS', '5')),
            link_retry_max_delay_seconds=float(os.getenv('LINK_RETRY_MAX_DELAY_SECONDS', '300')),
            embedding_model=os.getenv('EMBEDDING_MODEL', 'all-MiniLM-L6-v2'),
            classifier_model=os.getenv('CLASSIFIER_MODEL', 'gpt-4o-mini'),
        )


class IngestionSettings(BaseModel):
    """Top-level settings object handed to the service wiring."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    openai_api_key: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> 'IngestionSettings':
        """Create settings from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            redis=RedisConfig.from_env(),
            storage=StorageConfig.from_env(),
            reader=ReaderConfig.from_env(),
            pipeline=PipelineConfig.from_env(),
            openai_api_key=os.getenv('OPENAI_API_KEY', ''),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
            log_json=os.getenv('LOG_JSON', 'false').lower() == 'true',
        )
