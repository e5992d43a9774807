"""Database configuration and factory for linkfoundry.

Provides a unified SQLAlchemy engine/session factory with support for
both SQLite (development, tests) and PostgreSQL (production) backends.
"""

import os
import logging
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, URL
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class PostgresConfig(BaseModel):
    """PostgreSQL connection configuration."""
    host: str = "localhost"
    port: int = 5432
    database: str = "linkfoundry"
    user: str = "linkfoundry"
    password: str = ""


class DatabaseConfig(BaseModel):
    """Database configuration."""
    type: DatabaseType = Field(default=DatabaseType.SQLITE, description="Database type")

    # SQLite configuration
    sqlite_path: str = Field(default="linkfoundry.db", description="SQLite database path")

    # PostgreSQL configuration
    postgres: PostgresConfig = Field(default_factory=PostgresConfig, description="PostgreSQL configuration")

    # Connection settings
    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=20, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Log emitted SQL")

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create configuration from environment variables."""
        db_type = os.getenv('LINKFOUNDRY_DB_TYPE', 'sqlite').lower()

        common = dict(
            pool_size=int(os.getenv('DB_POOL_SIZE', '10')),
            max_overflow=int(os.getenv('DB_MAX_OVERFLOW', '20')),
            pool_timeout=int(os.getenv('DB_POOL_TIMEOUT', '30')),
            echo=os.getenv('DB_ECHO', 'false').lower() == 'true',
        )

        if db_type == 'postgresql':
            postgres_config = PostgresConfig(
                host=os.getenv('POSTGRES_HOST', 'localhost'),
                port=int(os.getenv('POSTGRES_PORT', '5432')),
                database=os.getenv('POSTGRES_DB', 'linkfoundry'),
                user=os.getenv('POSTGRES_USER', 'linkfoundry'),
                password=os.getenv('POSTGRES_PASSWORD', ''),
            )
            return cls(type=DatabaseType.POSTGRESQL, postgres=postgres_config, **common)

        return cls(
            type=DatabaseType.SQLITE,
            sqlite_path=os.getenv('SQLITE_PATH', 'linkfoundry.db'),
            **common
        )

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL for the configured backend."""
        if self.type == DatabaseType.POSTGRESQL:
            return URL.create(
                "postgresql+psycopg",
                username=self.postgres.user,
                password=self.postgres.password or None,
                host=self.postgres.host,
                port=self.postgres.port,
                database=self.postgres.database,
            )
        return URL.create("sqlite", database=self.sqlite_path)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class DatabaseFactory:
    """Factory for creating the engine and session maker."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def initialize(self, config: Optional[DatabaseConfig] = None, create_schema: bool = True) -> None:
        """Create the engine and, optionally, the schema."""
        # Import here to avoid circular imports
        from services.shared.models import Base

        if config is not None:
            self._config = config
        if self._config is None:
            self._config = DatabaseConfig.from_env()

        config = self._config
        url = config.sqlalchemy_url()

        if config.type == DatabaseType.POSTGRESQL:
            logger.info("Initializing PostgreSQL engine")
            self._engine = create_engine(
                url,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_timeout=config.pool_timeout,
                pool_pre_ping=True,
                echo=config.echo,
            )
        else:
            logger.info("Initializing SQLite engine")
            self._engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                echo=config.echo,
            )
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)

        if create_schema:
            Base.metadata.create_all(self._engine)

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info(f"Database engine initialized: {config.type.value}")

    def close(self) -> None:
        """Dispose of pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine disposed")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database engine not initialized. Call initialize() first.")
        return self._engine

    def session_factory(self) -> sessionmaker:
        """Get the session maker bound to the current engine."""
        if self._session_factory is None:
            raise RuntimeError("Database engine not initialized. Call initialize() first.")
        return self._session_factory

    def session(self) -> Session:
        return self.session_factory()()

    def is_postgresql(self) -> bool:
        """Check if using PostgreSQL backend."""
        return self._config is not None and self._config.type == DatabaseType.POSTGRESQL
