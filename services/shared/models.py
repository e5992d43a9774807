"""Shared database models for weblinks and per-user visits."""
from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, JSON, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import JSONB

from services.weblink.state import ChunkStatus, LinkState, ParseStatus

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Weblink(Base):
    """One row per canonical URL; the single source of truth for pipeline state."""
    __tablename__ = 'weblinks'

    id = Column(Integer, primary_key=True)
    link_id = Column(String(64), nullable=False, unique=True)
    url = Column(String(2048), nullable=False, unique=True)

    # Artifact keys
    storage_key = Column(String(255), nullable=True)
    parsed_doc_storage_key = Column(String(255), nullable=True)
    chunk_storage_key = Column(String(255), nullable=True)

    page_meta = Column(Text, nullable=False, default='{}')
    content_meta = Column(Text, nullable=False, default='{}')

    # Processing tracking fields
    parse_status = Column(String(20), nullable=False, default=ParseStatus.PROCESSING.value)
    chunk_status = Column(String(20), nullable=False, default=ChunkStatus.PROCESSING.value)
    parser_version = Column(String(50), nullable=True)
    parse_source = Column(String(20), nullable=True)
    last_parse_time = Column(DateTime(timezone=True), nullable=True)

    # Derived content
    summary = Column(Text, nullable=True)
    related_questions = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    visits = relationship("UserWeblink", back_populates="weblink")
    marks = relationship("WeblinkUserMark", back_populates="weblink")

    __table_args__ = (
        Index('idx_weblinks_parse_status', 'parse_status'),
        Index('idx_weblinks_chunk_status', 'chunk_status'),
    )

    @property
    def state(self) -> LinkState:
        """Pipeline state snapshot used by the readiness predicates."""
        return LinkState(
            parse_status=ParseStatus(self.parse_status),
            chunk_status=ChunkStatus(self.chunk_status),
            parser_version=self.parser_version,
            storage_key=self.storage_key,
            parsed_doc_storage_key=self.parsed_doc_storage_key,
            chunk_storage_key=self.chunk_storage_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'linkId': self.link_id,
            'url': self.url,
            'storageKey': self.storage_key,
            'parsedDocStorageKey': self.parsed_doc_storage_key,
            'chunkStorageKey': self.chunk_storage_key,
            'pageMeta': self.page_meta,
            'contentMeta': self.content_meta,
            'parseStatus': self.parse_status,
            'chunkStatus': self.chunk_status,
            'parserVersion': self.parser_version,
            'parseSource': self.parse_source,
            'summary': self.summary,
            'relatedQuestions': self.related_questions,
        }


class UserWeblink(Base):
    """One row per (user, canonical URL) visit history."""
    __tablename__ = 'user_weblinks'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    url = Column(String(2048), nullable=False)
    weblink_id = Column(Integer, ForeignKey('weblinks.id'), nullable=False)

    origin = Column(String(255), nullable=True)
    origin_page_url = Column(String(2048), nullable=True)
    origin_page_title = Column(String(1024), nullable=True)
    origin_page_description = Column(Text, nullable=True)

    last_visit_time = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    visit_times = Column(Integer, nullable=False, default=0)
    total_read_time = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    weblink = relationship("Weblink", back_populates="visits")

    __table_args__ = (
        UniqueConstraint('user_id', 'url', name='uq_user_weblinks_user_url'),
        Index('idx_user_weblinks_last_visit', 'user_id', 'last_visit_time'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'url': self.url,
            'weblinkId': self.weblink_id,
            'origin': self.origin,
            'originPageUrl': self.origin_page_url,
            'originPageTitle': self.origin_page_title,
            'originPageDescription': self.origin_page_description,
            'lastVisitTime': self.last_visit_time.isoformat() if self.last_visit_time else None,
            'visitTimes': self.visit_times,
            'totalReadTime': self.total_read_time,
        }


class WeblinkUserMark(Base):
    """A text selection a user marked on a page."""
    __tablename__ = 'weblink_user_marks'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    weblink_id = Column(Integer, ForeignKey('weblinks.id'), nullable=False)
    link_host = Column(String(255), nullable=False)
    selector = Column(Text, nullable=False)
    mark_type = Column(String(50), nullable=False, default='')
    extension_version = Column(String(50), nullable=False, default='')
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    weblink = relationship("Weblink", back_populates="marks")

    __table_args__ = (
        Index('idx_weblink_user_marks_user', 'user_id', 'weblink_id'),
    )


class UserChunk(Base):
    """Embedded content chunk made searchable for one user."""
    __tablename__ = 'user_weblink_chunks'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    url = Column(String(2048), nullable=False)
    chunk_id = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(JSONType, nullable=True)
    chunk_metadata = Column('metadata', JSONType, nullable=True)
    parser_version = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'chunk_id', name='uq_user_chunks_user_chunk'),
        Index('idx_user_chunks_user_url', 'user_id', 'url'),
    )
