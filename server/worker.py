"""Worker / API entry point for linkfoundry."""

import asyncio
import json
import logging
import signal

from config.settings import IngestionSettings
from observability.logging import setup_logging
from services.weblink.types import WeblinkJobData
from .bootstrap import build_weblink_service
from .jobs import job_manager

logger = logging.getLogger(__name__)


async def run_worker(settings: IngestionSettings) -> None:
    """Consume jobs until SIGINT/SIGTERM."""
    context = build_weblink_service(settings, job_manager)
    await job_manager.initialize()
    if job_manager.redis_client is None:
        logger.warning("Worker running without Redis; only jobs created in this process will run")
    await job_manager.start_workers(settings.redis.worker_concurrency)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info("Worker started, waiting for jobs")
    try:
        await stop.wait()
    finally:
        await context.close()
        logger.info("Worker stopped")


async def submit_links(settings: IngestionSettings, user_id: int, urls) -> bool:
    """Enqueue URLs for a user; a running worker picks the jobs up from Redis."""
    context = build_weblink_service(settings, job_manager)
    await job_manager.initialize()
    try:
        if job_manager.redis_client is None:
            logger.error("Redis is required to hand jobs to a worker; nothing submitted")
            return False
        jobs = await context.service.store_links(user_id, [{'url': url} for url in urls])
        print(json.dumps([job.to_dict() for job in jobs], indent=2))
        return True
    finally:
        await context.close()


async def process_once(settings: IngestionSettings, url: str) -> None:
    """Run the ingestion of a single URL and its follow-up jobs in this process."""
    context = build_weblink_service(settings, job_manager)
    await job_manager.initialize(use_redis=False)
    await job_manager.start_workers()
    try:
        weblink = await context.service.process_link(WeblinkJobData(url=url))
        await job_manager.join()
        if weblink is not None:
            weblink = await context.service.find_weblink(url=weblink.url) or weblink
            print(json.dumps(weblink.to_dict(), indent=2, default=str))
    finally:
        await context.close()


def main():
    """CLI for worker operations."""
    import argparse

    parser = argparse.ArgumentParser(description="linkfoundry weblink worker")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("worker", help="Consume ingestion jobs")

    api = sub.add_parser("api", help="Serve the HTTP API")
    api.add_argument("--host", default="0.0.0.0")
    api.add_argument("--port", type=int, default=8000)

    submit = sub.add_parser("submit", help="Enqueue links for a user")
    submit.add_argument("--user-id", type=int, required=True)
    submit.add_argument("urls", nargs="+")

    once = sub.add_parser("process", help="Process one URL inline")
    once.add_argument("url")

    args = parser.parse_args()

    settings = IngestionSettings.from_env()
    setup_logging(level=settings.log_level, use_json=settings.log_json)

    if args.command == "worker":
        asyncio.run(run_worker(settings))
    elif args.command == "api":
        import uvicorn
        from .weblink_api import create_app

        uvicorn.run(create_app(), host=args.host, port=args.port)
    elif args.command == "submit":
        if not asyncio.run(submit_links(settings, args.user_id, args.urls)):
            raise SystemExit(1)
    elif args.command == "process":
        asyncio.run(process_once(settings, args.url))


if __name__ == "__main__":
    main()
