"""Tests for linking processed weblinks to the users who visited them."""

import logging
from unittest.mock import AsyncMock

import pytest

from services.weblink.types import (
    CHANNEL_PROCESS_LINK,
    CHANNEL_PROCESS_LINK_BY_USER,
    WeblinkJobData,
)


async def _make_ready(service, url):
    await service.process_link(WeblinkJobData(url=url))
    await service.index_link(WeblinkJobData(url=url))


@pytest.mark.asyncio
async def test_retry_ceiling_drops_job(service, queue, repository, sample_url, caplog):
    link = WeblinkJobData(url=sample_url, user_id=7, retry_times=20)

    with caplog.at_level(logging.ERROR):
        result = await service.process_link_by_user(link)

    assert result is None
    assert queue.jobs == []
    assert await repository.find_weblink(url=sample_url) is None
    assert any("retry times exceed limit" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_missing_user_is_dropped(service, queue, sample_url):
    assert await service.process_link_by_user(WeblinkJobData(url=sample_url)) is None
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_not_ready_link_schedules_processing_and_retry(service, queue, sample_url):
    link = WeblinkJobData(url=sample_url + "?utm_campaign=x", user_id=7, retry_times=3, last_visit_time=1000)

    assert await service.process_link_by_user(link) is None

    [process] = queue.on(CHANNEL_PROCESS_LINK)
    assert process['payload']['url'] == sample_url
    assert process['payload']['retryTimes'] == 0
    assert process['delay'] is None

    [retry] = queue.on(CHANNEL_PROCESS_LINK_BY_USER)
    assert retry['payload']['retryTimes'] == 4
    assert retry['payload']['userId'] == 7
    assert retry['payload']['lastVisitTime'] == 1000
    assert retry['delay'] == 2.0


@pytest.mark.asyncio
async def test_parsed_but_not_indexed_is_not_ready(service, queue, sample_url):
    await service.process_link(WeblinkJobData(url=sample_url))
    queue.jobs.clear()

    await service.process_link_by_user(WeblinkJobData(url=sample_url, user_id=7))

    assert len(queue.on(CHANNEL_PROCESS_LINK)) == 1
    assert len(queue.on(CHANNEL_PROCESS_LINK_BY_USER)) == 1


@pytest.mark.asyncio
async def test_ready_link_creates_visit_and_user_chunks(make_service, repository, queue, sample_url):
    content_flow = AsyncMock()
    service = make_service(content_flow=content_flow)
    await _make_ready(service, sample_url)
    queue.jobs.clear()

    visit = await service.process_link_by_user(WeblinkJobData(
        url=sample_url, user_id=7, last_visit_time=1713952800000, read_time=12,
        origin="chrome-extension", origin_page_title="Reading list",
    ))

    assert visit is not None
    assert visit.user_id == 7
    assert visit.url == sample_url
    assert visit.visit_times == 1
    assert visit.total_read_time == 12
    assert visit.origin_page_title == "Reading list"
    assert queue.jobs == []

    assert await repository.count_user_chunks(7, url=sample_url) >= 3
    content_flow.assert_awaited_once()
    flow_visit, flow_weblink, flow_doc = content_flow.await_args.args
    assert flow_weblink.url == sample_url
    assert flow_doc.title == "Async Python"


@pytest.mark.asyncio
async def test_repeat_visits_accumulate(service, repository, sample_url):
    await _make_ready(service, sample_url)

    for read_time in (5, 10, 15):
        visit = await service.process_link_by_user(
            WeblinkJobData(url=sample_url, user_id=7, read_time=read_time)
        )

    assert visit.visit_times == 3
    assert visit.total_read_time == 30
    # Chunks are copied once per user
    first_count = await repository.count_user_chunks(7)
    await service.save_chunk_embeddings_for_user(7, [sample_url])
    assert await repository.count_user_chunks(7) == first_count


@pytest.mark.asyncio
async def test_content_flow_failure_does_not_fail_the_job(make_service, sample_url):
    service = make_service(content_flow=AsyncMock(side_effect=RuntimeError("downstream down")))
    await _make_ready(service, sample_url)

    visit = await service.process_link_by_user(WeblinkJobData(url=sample_url, user_id=7))

    assert visit is not None
