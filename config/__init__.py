"""Configuration module for linkfoundry.

Provides configuration management for database, redis, storage and the
ingestion pipeline.
"""

from .database import (
    DatabaseConfig,
    DatabaseType,
    DatabaseFactory,
    PostgresConfig,
)
from .settings import (
    IngestionSettings,
    PipelineConfig,
    ReaderConfig,
    RedisConfig,
    StorageConfig,
)

__all__ = [
    'DatabaseConfig',
    'DatabaseType',
    'DatabaseFactory',
    'PostgresConfig',
    'IngestionSettings',
    'PipelineConfig',
    'ReaderConfig',
    'RedisConfig',
    'StorageConfig',
]
