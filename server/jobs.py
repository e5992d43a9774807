"""Job processing system for linkfoundry.

At-least-once background jobs on named channels. With Redis, ready job ids
sit in a Redis list that any number of worker processes consume, delayed
jobs wait in a sorted set scored by their run time, and a job stays on a
processing list until its handler returns. Producers (the API, ``submit``)
only write to Redis; workers call ``start_workers`` to consume. Without
Redis the manager runs in memory-only mode inside one process.
"""

import asyncio
import json
import logging
import time
import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Any, Callable
from dataclasses import dataclass, asdict

import redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from services.weblink.types import (
    CHANNEL_EXTRACT_LINK_META,
    CHANNEL_INDEX_LINK,
    CHANNEL_PROCESS_LINK,
    CHANNEL_PROCESS_LINK_BY_USER,
)

logger = logging.getLogger(__name__)

CHANNELS = (
    CHANNEL_PROCESS_LINK,
    CHANNEL_PROCESS_LINK_BY_USER,
    CHANNEL_INDEX_LINK,
    CHANNEL_EXTRACT_LINK_META,
)

QUEUE_KEY = "jobs:queue"
PROCESSING_KEY = "jobs:processing"
DELAYED_KEY = "jobs:delayed"


class JobStatus(str, Enum):
    """Job status enumeration."""
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class JobRecord:
    """Job record for tracking job state."""
    id: str
    type: str
    status: JobStatus
    created_at: datetime
    run_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    parameters: Dict[str, Any] = None
    logs: List[str] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.parameters is None:
            self.parameters = {}
        if self.logs is None:
            self.logs = []

    def add_log(self, message: str):
        """Add a log message with timestamp."""
        timestamp = datetime.now().isoformat()
        self.logs.append(f"[{timestamp}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        for field in ['created_at', 'run_at', 'started_at', 'completed_at']:
            if data[field]:
                data[field] = data[field].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JobRecord':
        """Create JobRecord from dictionary."""
        for field in ['created_at', 'run_at', 'started_at', 'completed_at']:
            if data.get(field):
                data[field] = datetime.fromisoformat(data[field])
        data['status'] = JobStatus(data['status'])
        return cls(**data)


class JobManager:
    """Manages background jobs with Redis and APScheduler."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0",
                 record_ttl: int = 86400 * 7, poll_interval: float = 1.0,
                 visibility_timeout: int = 900, redis_client=None):
        self.redis_url = redis_url
        self.record_ttl = record_ttl
        self.poll_interval = poll_interval
        self.visibility_timeout = visibility_timeout
        self.redis_client = redis_client
        self.scheduler = None
        self.job_handlers: Dict[str, Callable] = {}
        self._running = False
        self._memory_jobs: Dict[str, JobRecord] = {}
        self._memory_queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    def configure(self, redis_url: str, record_ttl: int = 86400 * 7,
                  poll_interval: float = 1.0, visibility_timeout: int = 900):
        """Point the manager at another Redis before ``initialize``."""
        if self._running:
            raise RuntimeError("Cannot reconfigure a running job manager")
        self.redis_url = redis_url
        self.record_ttl = record_ttl
        self.poll_interval = poll_interval
        self.visibility_timeout = visibility_timeout

    @property
    def running(self) -> bool:
        return self._running

    async def _redis(self, method: Callable, *args):
        return await asyncio.get_running_loop().run_in_executor(None, method, *args)

    async def initialize(self, use_redis: bool = True):
        """Initialize Redis connection and scheduler.

        This only makes the manager able to enqueue; call ``start_workers``
        to consume jobs in this process.
        """
        loop = asyncio.get_running_loop()

        if use_redis:
            try:
                if self.redis_client is None:
                    self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
                await loop.run_in_executor(None, self.redis_client.ping)
                logger.info("Connected to Redis successfully")
            except redis.RedisError as e:
                logger.warning(f"Redis not available: {e}. Job manager will run in memory-only mode.")
                self.redis_client = None
        else:
            self.redis_client = None

        self._memory_queue = asyncio.Queue()
        self.scheduler = AsyncIOScheduler(
            executors={'default': AsyncIOExecutor()},
            job_defaults={'coalesce': True, 'max_instances': 1, 'misfire_grace_time': None},
            event_loop=loop,
        )
        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)

        self.scheduler.start()
        self._running = True
        logger.info("Job scheduler initialized successfully")

    async def start_workers(self, concurrency: int = 1):
        """Consume queued jobs in this process until ``shutdown``."""
        if not self._running:
            raise RuntimeError("Job manager not initialized")

        if self.redis_client:
            self.scheduler.add_job(self._promote_due_jobs, 'interval', seconds=self.poll_interval,
                                   id='promote-delayed-jobs', replace_existing=True)
            self.scheduler.add_job(self._requeue_stale_jobs, 'interval', seconds=60,
                                   id='requeue-stale-jobs', replace_existing=True)
            await self._promote_due_jobs()
            await self._requeue_stale_jobs()

        for index in range(concurrency):
            self._workers.append(asyncio.create_task(self._consume(index)))
        logger.info(f"Started {concurrency} job consumer(s)")

    async def join(self):
        """Wait until every job queued in memory has been handled."""
        if self.redis_client is None and self._memory_queue is not None:
            await self._memory_queue.join()

    async def shutdown(self):
        """Shutdown the job manager."""
        self._running = False
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        if self.redis_client:
            await self._redis(self.redis_client.close)
            self.redis_client = None
        logger.info("Job manager shutdown complete")

    def register_handler(self, job_type: str, handler: Callable):
        """Register a job handler function."""
        self.job_handlers[job_type] = handler
        logger.info(f"Registered handler for job type: {job_type}")

    async def enqueue_job(self, job_type: str, parameters: Dict[str, Any] = None,
                          delay_seconds: Optional[float] = None) -> str:
        """Enqueue a job on a channel, optionally delayed."""
        if not self._running:
            raise RuntimeError("Job manager not initialized")

        if job_type not in self.job_handlers:
            raise ValueError(f"No handler registered for job type: {job_type}")

        job_id = str(uuid.uuid4())
        now = datetime.now()
        run_at = now + timedelta(seconds=delay_seconds or 0)
        job_record = JobRecord(
            id=job_id,
            type=job_type,
            status=JobStatus.QUEUED,
            created_at=now,
            run_at=run_at,
            parameters=parameters or {}
        )
        await self._store_job_record(job_record)

        if self.redis_client:
            if delay_seconds:
                await self._redis(self.redis_client.zadd, DELAYED_KEY, {job_id: run_at.timestamp()})
            else:
                await self._redis(self.redis_client.lpush, QUEUE_KEY, job_id)
        elif delay_seconds:
            self.scheduler.add_job(self._release_delayed, 'date', run_date=run_at, args=[job_id], id=job_id)
        else:
            self._memory_queue.put_nowait(job_id)

        if delay_seconds:
            logger.info(f"Enqueued job {job_id} on {job_type} (delay {delay_seconds:.1f}s)")
        else:
            logger.debug(f"Enqueued job {job_id} on {job_type}")
        return job_id

    async def get_job_status(self, job_id: str) -> Optional[JobRecord]:
        """Get job status and details."""
        if self.redis_client:
            job_data = await self._redis(self.redis_client.get, f"job:{job_id}")
            if job_data:
                return JobRecord.from_dict(json.loads(job_data))
            return None
        return self._memory_jobs.get(job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[JobRecord]:
        """List jobs, optionally filtered by status."""
        jobs = []

        if self.redis_client:
            job_keys = await self._redis(self.redis_client.keys, "job:*")
            for key in job_keys[:limit]:
                job_data = await self._redis(self.redis_client.get, key)
                if job_data:
                    job_record = JobRecord.from_dict(json.loads(job_data))
                    if status is None or job_record.status == status:
                        jobs.append(job_record)
        else:
            for job_record in self._memory_jobs.values():
                if status is None or job_record.status == status:
                    jobs.append(job_record)

        # Sort by creation time (newest first)
        jobs.sort(key=lambda x: x.created_at, reverse=True)
        return jobs[:limit]

    async def _consume(self, index: int):
        logger.debug(f"Job consumer {index} started")
        while self._running:
            try:
                job_id = await self._next_job_id()
                if job_id is None:
                    continue
                try:
                    await self._execute_job(job_id)
                finally:
                    await self._ack(job_id)
            except redis.RedisError as e:
                logger.error(f"Job consumer {index} lost Redis: {e}")
                await asyncio.sleep(self.poll_interval)

    async def _next_job_id(self) -> Optional[str]:
        if self.redis_client:
            # The job stays on the processing list until acknowledged
            return await self._redis(
                self.redis_client.blmove, QUEUE_KEY, PROCESSING_KEY, self.poll_interval, 'RIGHT', 'LEFT'
            )
        try:
            return await asyncio.wait_for(self._memory_queue.get(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return None

    async def _ack(self, job_id: str):
        if self.redis_client:
            await self._redis(self.redis_client.lrem, PROCESSING_KEY, 1, job_id)
        else:
            self._memory_queue.task_done()

    async def _release_delayed(self, job_id: str):
        self._memory_queue.put_nowait(job_id)

    async def _promote_due_jobs(self, now: Optional[float] = None) -> int:
        """Move delayed jobs whose run time has passed onto the ready queue."""
        if not self.redis_client:
            return 0
        now = time.time() if now is None else now
        due = await self._redis(self.redis_client.zrangebyscore, DELAYED_KEY, '-inf', now)
        promoted = 0
        for job_id in due:
            # Only the consumer whose ZREM succeeds moves the job
            if await self._redis(self.redis_client.zrem, DELAYED_KEY, job_id):
                await self._redis(self.redis_client.lpush, QUEUE_KEY, job_id)
                promoted += 1
        if promoted:
            logger.debug(f"Promoted {promoted} delayed job(s)")
        return promoted

    async def _requeue_stale_jobs(self, now: Optional[datetime] = None) -> int:
        """Put jobs back on the queue when their consumer died mid-run."""
        if not self.redis_client:
            return 0
        cutoff = (now or datetime.now()) - timedelta(seconds=self.visibility_timeout)
        job_ids = await self._redis(self.redis_client.lrange, PROCESSING_KEY, 0, -1)
        requeued = 0
        for job_id in job_ids:
            job_record = await self.get_job_status(job_id)
            if job_record is None or job_record.status in (JobStatus.DONE, JobStatus.FAILED):
                await self._redis(self.redis_client.lrem, PROCESSING_KEY, 1, job_id)
                continue
            last_seen = job_record.started_at or job_record.run_at or job_record.created_at
            if last_seen > cutoff:
                continue
            if await self._redis(self.redis_client.lrem, PROCESSING_KEY, 1, job_id):
                await self._redis(self.redis_client.lpush, QUEUE_KEY, job_id)
                requeued += 1
                logger.warning(f"Requeued stale job {job_id} ({job_record.type})")
        return requeued

    async def _execute_job(self, job_id: str):
        """Execute a single job; handler errors are recorded, never re-raised."""
        job_record = await self.get_job_status(job_id)
        if not job_record:
            logger.error(f"Job {job_id} not found")
            return

        if job_record.status in (JobStatus.DONE, JobStatus.FAILED):
            logger.debug(f"Job {job_id} already {job_record.status.value}, skipping")
            return

        handler = self.job_handlers.get(job_record.type)
        if not handler:
            job_record.status = JobStatus.FAILED
            job_record.error = f"No handler registered for job type: {job_record.type}"
            job_record.add_log(f"Failed: {job_record.error}")
            await self._store_job_record(job_record)
            return

        job_record.status = JobStatus.RUNNING
        job_record.started_at = datetime.now()
        job_record.add_log("Job started")
        await self._store_job_record(job_record)

        try:
            result = await handler(job_record.id, job_record.parameters)
            job_record.status = JobStatus.DONE
            job_record.completed_at = datetime.now()
            job_record.result = result
            job_record.add_log("Job completed successfully")
        except Exception as e:
            job_record.status = JobStatus.FAILED
            job_record.completed_at = datetime.now()
            job_record.error = str(e)
            job_record.add_log(f"Job failed: {e}")
            logger.error(f"Job {job_id} failed: {e}")

        await self._store_job_record(job_record)

    async def _store_job_record(self, job_record: JobRecord):
        """Store job record in Redis or memory."""
        if self.redis_client:
            job_data = json.dumps(job_record.to_dict())
            await self._redis(self.redis_client.setex, f"job:{job_record.id}", self.record_ttl, job_data)
        else:
            self._memory_jobs[job_record.id] = job_record

    def _job_executed(self, event):
        logger.debug(f"Scheduled task {event.job_id} executed")

    def _job_error(self, event):
        logger.error(f"Scheduled task {event.job_id} failed: {event.exception}")


# Global job manager instance
job_manager = JobManager()
