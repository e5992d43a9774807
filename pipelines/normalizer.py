"""URL canonicalization.

The canonical form is the dedup and lookup key for every weblink record, so
``normalize_url`` must be deterministic and idempotent.
"""

import logging
from typing import List, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

# Query parameters that only carry attribution/tracking information
TRACKING_PARAMS = {
    'utm', 'fbclid', 'gclid', 'dclid', 'msclkid', 'yclid', 'igshid',
    'mc_cid', 'mc_eid', '_ga', '_gl', 'spm', 'scm', 'ref_src', 'vero_id',
}
TRACKING_PREFIXES = ('utm_', 'hsa_', 'pk_')

DEFAULT_PORTS = {'http': 80, 'https': 443}


def is_tracking_param(name: str) -> bool:
    """Check whether a query parameter name is a known tracker."""
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PREFIXES)


def _clean_query(query: str) -> str:
    pairs: List[Tuple[str, str]] = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if not is_tracking_param(key)
    ]
    pairs.sort()
    return urlencode(pairs, doseq=True)


def normalize_url(url: str) -> str:
    """Canonicalize a URL.

    - scheme and host are lowercased, scheme defaults to https
    - default ports and fragments are dropped
    - tracking parameters are removed, remaining parameters are sorted
    - trailing slashes are stripped from the path (the bare root becomes empty)

    Raises:
        ValueError: if the URL has no host
    """
    if url is None:
        raise ValueError("url is required")

    raw = url.strip()
    if '://' not in raw:
        raw = f"https://{raw.lstrip('/')}"

    parts = urlsplit(raw)
    scheme = parts.scheme.lower()
    host = (parts.hostname or '').lower()
    if not host:
        raise ValueError(f"invalid url, missing host: {url!r}")

    netloc = host
    if ':' in host:
        # IPv6 literal
        netloc = f"[{host}]"
    if parts.port and parts.port != DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{parts.port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path.rstrip('/')
    query = _clean_query(parts.query)

    return urlunsplit((scheme, netloc, path, query, ''))
