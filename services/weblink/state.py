"""Pipeline state of a canonical link.

Parsing and chunking are two independent sub-state machines on the same
record: ``processing -> finish | failed`` on each axis.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ParseStatus(str, Enum):
    PROCESSING = "processing"
    FINISH = "finish"
    FAILED = "failed"


class ChunkStatus(str, Enum):
    PROCESSING = "processing"
    FINISH = "finish"
    FAILED = "failed"


class ParseSource(str, Enum):
    CLIENT_UPLOAD = "clientUpload"
    SERVER_CRAWL = "serverCrawl"


@dataclass(frozen=True)
class LinkState:
    """Snapshot of the fields that drive the orchestrator's decisions."""
    parse_status: ParseStatus
    chunk_status: ChunkStatus
    parser_version: Optional[str] = None
    storage_key: Optional[str] = None
    parsed_doc_storage_key: Optional[str] = None
    chunk_storage_key: Optional[str] = None

    def is_ready(self, current_version: str) -> bool:
        """A link is ready once parsed by the current engine version."""
        return is_ready(self, current_version)

    def is_parse_finished(self) -> bool:
        return bool(self.parsed_doc_storage_key) and self.parse_status == ParseStatus.FINISH

    def is_chunk_current(self, current_version: str) -> bool:
        """Chunk artifact exists and was produced by the current engine version."""
        return (
            bool(self.chunk_storage_key)
            and self.chunk_status == ChunkStatus.FINISH
            and self.parser_version == current_version
        )


def is_ready(state: LinkState, current_version: str) -> bool:
    return state.is_parse_finished() and state.parser_version == current_version
