"""Job handlers for the weblink ingestion channels."""

import logging
from typing import Any, Dict

from services.weblink.service import WeblinkService
from services.weblink.types import WeblinkJobData
from .jobs import (
    CHANNEL_EXTRACT_LINK_META,
    CHANNEL_INDEX_LINK,
    CHANNEL_PROCESS_LINK,
    CHANNEL_PROCESS_LINK_BY_USER,
    JobManager,
)

logger = logging.getLogger(__name__)


def _weblink_summary(weblink) -> Dict[str, Any]:
    if weblink is None:
        return {"handled": True, "weblink": None}
    return {
        "handled": True,
        "weblink": {
            "url": weblink.url,
            "parseStatus": weblink.parse_status,
            "chunkStatus": weblink.chunk_status,
        },
    }


def make_handlers(service: WeblinkService) -> Dict[str, Any]:
    """Build one handler per channel around a service instance.

    Each handler takes ``(job_id, params)`` and returns a small JSON-able
    result for the job record.
    """

    async def process_link_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        link = WeblinkJobData.from_dict(params)
        logger.info(f"Job {job_id}: processLink {link.url}")
        return _weblink_summary(await service.process_link(link))

    async def process_link_by_user_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        link = WeblinkJobData.from_dict(params)
        logger.info(f"Job {job_id}: processLinkByUser {link.url} (user {link.user_id}, retry {link.retry_times})")
        visit = await service.process_link_by_user(link)
        return {"handled": True, "linked": visit is not None}

    async def index_link_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        link = WeblinkJobData.from_dict(params)
        logger.info(f"Job {job_id}: indexLink {link.url}")
        return _weblink_summary(await service.index_link(link))

    async def extract_link_meta_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        link = WeblinkJobData.from_dict(params)
        logger.info(f"Job {job_id}: extractLinkMeta {link.url}")
        return _weblink_summary(await service.extract_link_meta(link))

    return {
        CHANNEL_PROCESS_LINK: process_link_job,
        CHANNEL_PROCESS_LINK_BY_USER: process_link_by_user_job,
        CHANNEL_INDEX_LINK: index_link_job,
        CHANNEL_EXTRACT_LINK_META: extract_link_meta_job,
    }


def register_weblink_handlers(manager: JobManager, service: WeblinkService) -> None:
    """Register the weblink channel handlers with the job manager."""
    for channel, handler in make_handlers(service).items():
        manager.register_handler(channel, handler)
    logger.info("Weblink job handlers registered successfully")
