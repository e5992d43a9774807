"""Weblink ingestion: payload types, link state and the orchestrator (``service``)."""

from .state import ChunkStatus, LinkState, ParseSource, ParseStatus, is_ready
from .types import ParsedDocument, Selection, Source, WeblinkData, WeblinkJobData

__all__ = [
    'ChunkStatus',
    'LinkState',
    'ParseSource',
    'ParseStatus',
    'is_ready',
    'ParsedDocument',
    'Selection',
    'Source',
    'WeblinkData',
    'WeblinkJobData',
]
