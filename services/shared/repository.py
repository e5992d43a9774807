"""Persistence layer for weblinks and per-user visit records.

Creation and counters go through the database's native upsert
(``INSERT ... ON CONFLICT``) and in-statement increments, never through
read-modify-write in Python. Sessions are synchronous; every public method
runs its session work in the default executor so the event loop never
blocks on the database.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from services.weblink.state import ChunkStatus, ParseStatus
from .models import UserChunk, UserWeblink, Weblink, WeblinkUserMark

logger = logging.getLogger(__name__)


def gen_link_id() -> str:
    """Opaque public id of a weblink."""
    return f"l-{uuid.uuid4().hex[:24]}"


def _insert_for(session: Session):
    """Dialect-specific ``insert`` supporting ON CONFLICT clauses."""
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert
    if dialect == 'sqlite':
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")


class WeblinkRepository:
    """Weblink, visit, mark and per-user chunk persistence."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _run(self, func: Callable, *args, **kwargs):
        return await asyncio.get_running_loop().run_in_executor(None, partial(func, *args, **kwargs))

    # Weblinks

    async def upsert_weblink(self, url: str) -> Weblink:
        """Create the weblink in ``processing`` state if absent; no-op otherwise."""
        return await self._run(self._upsert_weblink, url)

    def _upsert_weblink(self, url: str) -> Weblink:
        with self.session_factory() as session:
            insert = _insert_for(session)
            stmt = insert(Weblink).values(
                url=url,
                link_id=gen_link_id(),
                parse_status=ParseStatus.PROCESSING.value,
                chunk_status=ChunkStatus.PROCESSING.value,
                page_meta='{}',
                content_meta='{}',
                last_parse_time=datetime.now(timezone.utc),
            ).on_conflict_do_nothing(index_elements=['url'])
            session.execute(stmt)
            session.commit()
            return session.scalars(select(Weblink).where(Weblink.url == url)).one()

    async def find_weblink(self, url: Optional[str] = None, link_id: Optional[str] = None) -> Optional[Weblink]:
        """Find a weblink by canonical URL or public link id."""
        if url is None and link_id is None:
            raise ValueError("url or link_id is required")
        return await self._run(self._find_weblink, url, link_id)

    def _find_weblink(self, url: Optional[str], link_id: Optional[str]) -> Optional[Weblink]:
        with self.session_factory() as session:
            stmt = select(Weblink)
            if url is not None:
                stmt = stmt.where(Weblink.url == url)
            if link_id is not None:
                stmt = stmt.where(Weblink.link_id == link_id)
            return session.scalars(stmt.limit(1)).first()

    async def find_weblinks_by_urls(self, urls: Iterable[str]) -> List[Weblink]:
        urls = list(urls)
        if not urls:
            return []
        return await self._run(self._find_weblinks_by_urls, urls)

    def _find_weblinks_by_urls(self, urls: List[str]) -> List[Weblink]:
        with self.session_factory() as session:
            return list(session.scalars(select(Weblink).where(Weblink.url.in_(urls))))

    async def update_weblink(self, weblink_id: int, **values: Any) -> Weblink:
        """Update columns of a weblink and return the fresh row."""
        return await self._run(self._update_weblink, weblink_id, values)

    def _update_weblink(self, weblink_id: int, values: Dict[str, Any]) -> Weblink:
        with self.session_factory() as session:
            session.execute(update(Weblink).where(Weblink.id == weblink_id).values(**values))
            session.commit()
            return session.get(Weblink, weblink_id, populate_existing=True)

    async def update_weblink_by_url(self, url: str, **values: Any) -> Optional[Weblink]:
        return await self._run(self._update_weblink_by_url, url, values)

    def _update_weblink_by_url(self, url: str, values: Dict[str, Any]) -> Optional[Weblink]:
        with self.session_factory() as session:
            session.execute(update(Weblink).where(Weblink.url == url).values(**values))
            session.commit()
            return session.scalars(select(Weblink).where(Weblink.url == url)).first()

    async def mark_failed(self, url: str) -> Optional[Weblink]:
        """Record both sub-states as failed."""
        return await self.update_weblink_by_url(
            url,
            parse_status=ParseStatus.FAILED.value,
            chunk_status=ChunkStatus.FAILED.value,
        )

    # Visits

    async def upsert_user_weblink(self, *, user_id: int, url: str, weblink_id: int,
                                  last_visit_time: datetime, visit_count: int = 1,
                                  read_time: int = 0, origin: Optional[str] = None,
                                  origin_page_url: Optional[str] = None,
                                  origin_page_title: Optional[str] = None,
                                  origin_page_description: Optional[str] = None) -> UserWeblink:
        """Create the visit row, or add to its counters on repeat visits."""
        values = dict(
            user_id=user_id,
            url=url,
            weblink_id=weblink_id,
            origin=origin,
            origin_page_url=origin_page_url,
            origin_page_title=origin_page_title,
            origin_page_description=origin_page_description,
            last_visit_time=last_visit_time,
            visit_times=visit_count,
            total_read_time=read_time,
        )
        return await self._run(self._upsert_user_weblink, values)

    def _upsert_user_weblink(self, values: Dict[str, Any]) -> UserWeblink:
        with self.session_factory() as session:
            insert = _insert_for(session)
            stmt = insert(UserWeblink).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=['user_id', 'url'],
                set_={
                    'last_visit_time': stmt.excluded.last_visit_time,
                    'visit_times': UserWeblink.visit_times + stmt.excluded.visit_times,
                    'total_read_time': UserWeblink.total_read_time + stmt.excluded.total_read_time,
                    'updated_at': datetime.now(timezone.utc),
                },
            )
            session.execute(stmt)
            session.commit()
            return session.scalars(
                select(UserWeblink).where(UserWeblink.user_id == values['user_id'],
                                          UserWeblink.url == values['url'])
            ).one()

    async def list_user_weblinks(self, user_id: int, skip: int = 0, take: int = 20,
                                 order: str = 'desc') -> List[UserWeblink]:
        """Paginated visit history of one user, ordered by last visit time."""
        column = UserWeblink.last_visit_time
        ordering = column.asc() if order == 'asc' else column.desc()
        stmt = (
            select(UserWeblink)
            .where(UserWeblink.user_id == user_id)
            .order_by(ordering, UserWeblink.id)
            .offset(skip)
            .limit(take)
        )
        return await self._run(self._scalars, stmt)

    def _scalars(self, stmt) -> list:
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    # Marks and per-user chunks

    async def create_user_marks(self, marks: List[Dict[str, Any]]) -> int:
        if not marks:
            return 0
        return await self._run(self._create_user_marks, marks)

    def _create_user_marks(self, marks: List[Dict[str, Any]]) -> int:
        with self.session_factory() as session:
            session.add_all(WeblinkUserMark(**mark) for mark in marks)
            session.commit()
        return len(marks)

    async def save_user_chunks(self, user_id: int, url: str, chunks: List[Dict[str, Any]],
                               parser_version: Optional[str] = None) -> int:
        """Store embedded chunks for a user, skipping ones already stored."""
        if not chunks:
            return 0
        rows = [
            {
                'user_id': user_id,
                'url': url,
                'chunk_id': chunk['id'],
                'content': chunk['content'],
                'embedding': chunk.get('vector'),
                'metadata': chunk.get('metadata', {}),
                'parser_version': parser_version,
            }
            for chunk in chunks
        ]
        return await self._run(self._save_user_chunks, rows)

    def _save_user_chunks(self, rows: List[Dict[str, Any]]) -> int:
        with self.session_factory() as session:
            insert = _insert_for(session)
            stmt = insert(UserChunk.__table__).values(rows).on_conflict_do_nothing(
                index_elements=['user_id', 'chunk_id']
            )
            result = session.execute(stmt)
            session.commit()
            return max(result.rowcount or 0, 0)

    async def count_user_chunks(self, user_id: int, url: Optional[str] = None) -> int:
        stmt = select(UserChunk).where(UserChunk.user_id == user_id)
        if url is not None:
            stmt = stmt.where(UserChunk.url == url)
        return len(await self._run(self._scalars, stmt))
