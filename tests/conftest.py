"""Shared fixtures and in-memory fakes for the weblink pipeline tests."""

import asyncio
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.database import DatabaseConfig, DatabaseFactory, DatabaseType
from config.settings import PipelineConfig
from pipelines.chunker import DocumentChunker
from pipelines.crawler import FetchError, ReaderResult
from pipelines.parser import ContentParser
from services.shared.cache import ContentCache
from services.shared.locks import LockManager
from services.shared.repository import WeblinkRepository
from services.shared.storage import ArtifactStoreError
from services.weblink.service import WeblinkService

PARSER_VERSION = "test-v1"


class FakeRedis:
    """The subset of redis.asyncio used by the lock manager."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}

    def _purge(self, key: str) -> None:
        expires = self._expiry.get(key)
        if expires is not None and expires <= time.monotonic():
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    async def set(self, key, value, nx=False, px=None, ex=None):
        self._purge(key)
        if nx and key in self._data:
            return None
        self._data[key] = value
        if px is not None:
            self._expiry[key] = time.monotonic() + px / 1000
        elif ex is not None:
            self._expiry[key] = time.monotonic() + ex
        return True

    async def get(self, key):
        self._purge(key)
        return self._data.get(key)

    async def delete(self, key):
        self._expiry.pop(key, None)
        return 1 if self._data.pop(key, None) is not None else 0

    async def eval(self, script, numkeys, key, token):
        # Compare-and-delete, as the release script does
        self._purge(key)
        if self._data.get(key) == token:
            return await self.delete(key)
        return 0

    def expire(self, key: str) -> None:
        self._expiry[key] = 0.0

    def keys(self) -> List[str]:
        for key in list(self._data):
            self._purge(key)
        return list(self._data)


class FakeArtifactStore:
    """Artifact store keeping objects in a dict and counting uploads per prefix."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[str] = []
        self.fail_uploads = False

    async def upload(self, key: str, data, content_type: str = "application/octet-stream") -> str:
        await asyncio.sleep(0)
        if self.fail_uploads:
            raise ArtifactStoreError(f"upload of {key} failed: storage offline")
        payload = data.encode('utf-8') if isinstance(data, str) else data
        self.objects[key] = payload
        self.uploads.append(key)
        return uuid.uuid4().hex

    async def download(self, key: str) -> bytes:
        await asyncio.sleep(0)
        if key not in self.objects:
            raise ArtifactStoreError(f"download of {key} failed: no such key")
        return self.objects[key]

    def upload_count(self, prefix: str) -> int:
        return sum(1 for key in self.uploads if key.startswith(prefix))


class RecordingQueue:
    """Job queue that only records what was enqueued."""

    def __init__(self):
        self.jobs: List[Dict[str, Any]] = []

    async def enqueue_job(self, channel: str, payload: Dict[str, Any],
                          delay_seconds: Optional[float] = None) -> str:
        job_id = uuid.uuid4().hex
        self.jobs.append({'id': job_id, 'channel': channel, 'payload': payload, 'delay': delay_seconds})
        return job_id

    def on(self, channel: str) -> List[Dict[str, Any]]:
        return [job for job in self.jobs if job['channel'] == channel]


class FakeReader:
    """Remote reader serving canned pages."""

    def __init__(self, pages: Optional[Dict[str, Dict[str, Any]]] = None):
        self.pages = pages or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> ReaderResult:
        self.calls.append(url)
        await asyncio.sleep(0)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, "reader returned status 404", 404)
        return ReaderResult(
            url=url,
            content=page['content'],
            title=page.get('title'),
            published_time=page.get('publishedTime'),
            response_time=0.01,
        )

    async def close(self):
        pass


class FakeEmbedder:
    def __init__(self):
        self.calls = 0

    async def embed_documents(self, texts):
        self.calls += 1
        await asyncio.sleep(0)
        return [[float(len(text)), 1.0, 0.0] for text in texts]


class FakeClassifier:
    def __init__(self, result=None):
        self.result = result if result is not None else {
            "topics": [{"key": "programming", "name": "Programming", "score": 0.9}]
        }
        self.calls = 0

    async def classify(self, doc):
        self.calls += 1
        await asyncio.sleep(0)
        return self.result


SAMPLE_URL = "https://example.com/articles/async-python"
SAMPLE_PAGE = {
    'title': 'Async Python',
    'publishedTime': '2024-04-24T10:00:00Z',
    'content': (
        "# Async Python\n\n"
        "Coroutines let a single thread interleave many waiting tasks. "
        "The event loop schedules them cooperatively.\n\n"
        "## Tasks\n\n"
        "A task wraps a coroutine and runs it on the loop. "
        "Gathering tasks waits for all of them to finish.\n\n"
        "## Locks\n\n"
        "Locks serialize access to shared state between tasks."
    ),
}


@pytest.fixture
def database(tmp_path):
    """Temporary SQLite database with the schema created."""
    factory = DatabaseFactory(DatabaseConfig(type=DatabaseType.SQLITE, sqlite_path=str(tmp_path / "test.db")))
    factory.initialize()
    yield factory
    factory.close()


@pytest.fixture
def repository(database):
    return WeblinkRepository(database.session_factory())


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def artifact_store():
    return FakeArtifactStore()


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def reader():
    return FakeReader({SAMPLE_URL: SAMPLE_PAGE})


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def pipeline_config():
    return PipelineConfig(parser_version=PARSER_VERSION, user_retry_delay_seconds=2.0)


@pytest.fixture
def make_service(repository, artifact_store, fake_redis, reader, embedder, classifier, queue, pipeline_config):
    """Factory building services that share the same database, storage and lock store."""

    def _make(**overrides) -> WeblinkService:
        kwargs = dict(
            repository=repository,
            artifact_store=artifact_store,
            lock_manager=LockManager(fake_redis, lease_seconds=60),
            parser=ContentParser(reader),
            chunker=DocumentChunker(max_tokens=64, overlap_tokens=8),
            embedder=embedder,
            classifier=classifier,
            queue=queue,
            cache=ContentCache(100),
            config=pipeline_config,
        )
        kwargs.update(overrides)
        return WeblinkService(**kwargs)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def sample_url():
    return SAMPLE_URL


@pytest.fixture
def sample_page():
    return SAMPLE_PAGE
