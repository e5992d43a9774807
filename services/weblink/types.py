"""Payload and document types exchanged by the weblink pipeline."""

import copy
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, List, Optional

# Job queue channels
CHANNEL_PROCESS_LINK = "processLink"
CHANNEL_PROCESS_LINK_BY_USER = "processLinkByUser"
CHANNEL_INDEX_LINK = "indexLink"
CHANNEL_EXTRACT_LINK_META = "extractLinkMeta"


@dataclass
class ParsedDocument:
    """Parsed page content plus its metadata (title, source, publishedTime)."""
    page_content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        return self.metadata.get('title')

    @property
    def source(self) -> Optional[str]:
        return self.metadata.get('source')

    def to_dict(self) -> Dict[str, Any]:
        return {'pageContent': self.page_content, 'metadata': dict(self.metadata)}


@dataclass
class WeblinkData:
    """Raw HTML (empty for reader-fetched pages) and the parsed document."""
    html: str
    doc: Optional[ParsedDocument]

    def copy(self) -> 'WeblinkData':
        return copy.deepcopy(self)


# Wire names of the job payload (the browser extension speaks camelCase)
_WIRE_NAMES = {
    'user_id': 'userId',
    'origin_page_url': 'originPageUrl',
    'origin_page_title': 'originPageTitle',
    'origin_page_description': 'originPageDescription',
    'last_visit_time': 'lastVisitTime',
    'visit_count': 'visitCount',
    'read_time': 'readTime',
    'storage_key': 'storageKey',
    'retry_times': 'retryTimes',
}


@dataclass
class WeblinkJobData:
    """Queue payload for ingestion jobs."""
    url: str
    user_id: Optional[int] = None
    title: Optional[str] = None
    origin: Optional[str] = None
    origin_page_url: Optional[str] = None
    origin_page_title: Optional[str] = None
    origin_page_description: Optional[str] = None
    last_visit_time: Optional[int] = None  # epoch milliseconds
    visit_count: Optional[int] = None
    read_time: Optional[int] = None
    storage_key: Optional[str] = None
    retry_times: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire payload."""
        data = asdict(self)
        return {_WIRE_NAMES.get(key, key): value for key, value in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WeblinkJobData':
        """Build from a wire payload; accepts camelCase or snake_case keys."""
        reverse = {wire: name for name, wire in _WIRE_NAMES.items()}
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = reverse.get(key, key)
            if name in known:
                kwargs[name] = value
        if kwargs.get('retry_times') is None:
            kwargs['retry_times'] = 0
        return cls(**kwargs)


@dataclass
class Selection:
    """A text selection a user made on a page."""
    content: str
    x_path: Optional[str] = None


@dataclass
class Source:
    """A page referenced by a chat/summarization request."""
    metadata: Dict[str, Any] = field(default_factory=dict)
    selections: List[Selection] = field(default_factory=list)

    @property
    def url(self) -> Optional[str]:
        return self.metadata.get('source')
