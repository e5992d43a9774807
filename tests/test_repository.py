"""Tests for the weblink repository against SQLite."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from services.shared.models import Weblink
from services.shared.repository import WeblinkRepository
from services.weblink.state import ChunkStatus, ParseStatus


@pytest.mark.asyncio
async def test_upsert_weblink_is_idempotent(repository, database):
    first = await repository.upsert_weblink("https://a.com")
    second = await repository.upsert_weblink("https://a.com")

    assert first.id == second.id
    assert first.link_id == second.link_id
    assert first.parse_status == ParseStatus.PROCESSING.value
    assert first.chunk_status == ChunkStatus.PROCESSING.value
    with database.session() as session:
        assert session.query(Weblink).count() == 1


@pytest.mark.asyncio
async def test_upsert_does_not_reset_progress(repository):
    weblink = await repository.upsert_weblink("https://a.com")
    await repository.update_weblink(weblink.id, parse_status=ParseStatus.FINISH.value,
                                    parsed_doc_storage_key="docs/x.md")

    again = await repository.upsert_weblink("https://a.com")
    assert again.parse_status == ParseStatus.FINISH.value
    assert again.parsed_doc_storage_key == "docs/x.md"


@pytest.mark.asyncio
async def test_find_weblink_by_url_or_link_id(repository):
    weblink = await repository.upsert_weblink("https://a.com")

    assert (await repository.find_weblink(url="https://a.com")).id == weblink.id
    assert (await repository.find_weblink(link_id=weblink.link_id)).id == weblink.id
    assert await repository.find_weblink(url="https://b.com") is None
    with pytest.raises(ValueError):
        await repository.find_weblink()


@pytest.mark.asyncio
async def test_mark_failed_sets_both_statuses(repository):
    await repository.upsert_weblink("https://a.com")
    failed = await repository.mark_failed("https://a.com")
    assert failed.parse_status == ParseStatus.FAILED.value
    assert failed.chunk_status == ChunkStatus.FAILED.value


@pytest.mark.asyncio
async def test_visits_are_aggregated(repository):
    weblink = await repository.upsert_weblink("https://a.com")
    base = datetime(2024, 4, 24, 12, 0, tzinfo=timezone.utc)

    for i, read_time in enumerate([5, 10, 15]):
        visit = await repository.upsert_user_weblink(
            user_id=1, url="https://a.com", weblink_id=weblink.id,
            last_visit_time=base + timedelta(minutes=i), read_time=read_time,
        )

    assert visit.visit_times == 3
    assert visit.total_read_time == 30
    assert visit.last_visit_time.replace(tzinfo=None) == (base + timedelta(minutes=2)).replace(tzinfo=None)

    history = await repository.list_user_weblinks(1)
    assert len(history) == 1


@pytest.mark.asyncio
async def test_history_is_per_user_and_ordered(repository):
    a = await repository.upsert_weblink("https://a.com")
    b = await repository.upsert_weblink("https://b.com")
    now = datetime.now(timezone.utc)

    await repository.upsert_user_weblink(user_id=1, url=a.url, weblink_id=a.id, last_visit_time=now - timedelta(hours=1))
    await repository.upsert_user_weblink(user_id=1, url=b.url, weblink_id=b.id, last_visit_time=now)
    await repository.upsert_user_weblink(user_id=2, url=a.url, weblink_id=a.id, last_visit_time=now)

    newest_first = await repository.list_user_weblinks(1)
    assert [v.url for v in newest_first] == ["https://b.com", "https://a.com"]

    oldest_first = await repository.list_user_weblinks(1, order='asc')
    assert [v.url for v in oldest_first] == ["https://a.com", "https://b.com"]

    paged = await repository.list_user_weblinks(1, skip=1, take=1)
    assert [v.url for v in paged] == ["https://a.com"]


@pytest.mark.asyncio
async def test_user_chunks_skip_duplicates(repository):
    chunks = [
        {'id': 'c1', 'content': 'first', 'vector': [0.1, 0.2], 'metadata': {'heading': None}},
        {'id': 'c2', 'content': 'second', 'vector': [0.3, 0.4], 'metadata': {}},
    ]
    await repository.save_user_chunks(1, "https://a.com", chunks, parser_version="v1")
    await repository.save_user_chunks(1, "https://a.com", chunks, parser_version="v1")
    await repository.save_user_chunks(2, "https://a.com", chunks[:1], parser_version="v1")

    assert await repository.count_user_chunks(1) == 2
    assert await repository.count_user_chunks(2, url="https://a.com") == 1


@pytest.mark.asyncio
async def test_create_user_marks(repository):
    weblink = await repository.upsert_weblink("https://a.com")
    created = await repository.create_user_marks([
        {'user_id': 1, 'weblink_id': weblink.id, 'link_host': 'a.com', 'selector': '/html/body/p[1]'},
    ])
    assert created == 1
    assert await repository.create_user_marks([]) == 0


@pytest.mark.asyncio
async def test_session_work_runs_off_the_event_loop(database):
    loop_thread = threading.get_ident()
    session_threads = []
    factory = database.session_factory()

    def recording_factory():
        session_threads.append(threading.get_ident())
        return factory()

    repository = WeblinkRepository(recording_factory)
    weblink = await repository.upsert_weblink("https://a.com")
    await repository.update_weblink(weblink.id, parse_status=ParseStatus.FINISH.value)
    await repository.find_weblink(url="https://a.com")
    await repository.list_user_weblinks(user_id=1)

    assert len(session_threads) == 4
    assert loop_thread not in session_threads
