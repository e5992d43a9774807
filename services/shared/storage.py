"""Artifact storage client (MinIO / S3 compatible).

Artifacts are content-addressed: keys derive from a SHA-256 of the
canonical URL, so re-uploading the same artifact overwrites in place.
"""

import asyncio
import hashlib
import io
import logging
from functools import partial
from typing import Optional, Union

from minio import Minio
from minio.error import S3Error

from config.settings import StorageConfig

logger = logging.getLogger(__name__)

HTML_PREFIX = "html/"
DOCS_PREFIX = "docs/"
CHUNKS_PREFIX = "chunks/"


class ArtifactStoreError(Exception):
    """Raised when an artifact cannot be written or read."""


def sha256_hash(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def html_key(url: str) -> str:
    """Key of the raw HTML artifact of a canonical URL."""
    return f"{HTML_PREFIX}{sha256_hash(url)}.html"


def parsed_doc_key(url: str) -> str:
    """Key of the parsed markdown artifact of a canonical URL."""
    return f"{DOCS_PREFIX}{sha256_hash(url)}.md"


def chunk_key(url: str, parser_version: str) -> str:
    """Key of the serialized chunk set, versioned by the engine version."""
    return f"{CHUNKS_PREFIX}{sha256_hash(url)}-{parser_version}.json.gz"


class ArtifactStore:
    """Thin async facade over the (blocking) MinIO client."""

    def __init__(self, config: StorageConfig, client: Optional[Minio] = None):
        self.config = config
        self.bucket = config.bucket
        self.client = client or Minio(
            config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key,
            secure=config.secure,
        )

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created artifact bucket {self.bucket}")
        except S3Error as e:
            raise ArtifactStoreError(f"bucket check failed for {self.bucket}: {e}") from e

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def upload(self, key: str, data: Union[str, bytes],
                     content_type: str = "application/octet-stream") -> str:
        """Upload bytes (or text, encoded as UTF-8) under ``key``; returns the object etag."""
        payload = data.encode('utf-8') if isinstance(data, str) else data
        try:
            result = await self._run(
                self.client.put_object,
                self.bucket,
                key,
                io.BytesIO(payload),
                len(payload),
                content_type=content_type,
            )
        except (S3Error, OSError) as e:
            raise ArtifactStoreError(f"upload of {key} failed: {e}") from e

        logger.info(f"Uploaded {key} ({len(payload)} bytes)")
        return result.etag

    def _download_sync(self, key: str) -> bytes:
        response = self.client.get_object(self.bucket, key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    async def download(self, key: str) -> bytes:
        """Download the object stored under ``key``."""
        try:
            return await self._run(self._download_sync, key)
        except (S3Error, OSError) as e:
            raise ArtifactStoreError(f"download of {key} failed: {e}") from e
