"""Pipelines package for linkfoundry.

Provides URL normalization, remote reading, parsing and chunking.
"""

from .normalizer import normalize_url, is_tracking_param
from .crawler import RemoteReader, ReaderResult, FetchError
from .parser import ContentParser, html_to_markdown
from .chunker import DocumentChunker, DocumentChunk
from .tokens import estimate_tokens, truncate_to_token_length

__all__ = [
    # Normalizer
    'normalize_url',
    'is_tracking_param',

    # Reader / parser
    'RemoteReader',
    'ReaderResult',
    'FetchError',
    'ContentParser',
    'html_to_markdown',

    # Chunker
    'DocumentChunker',
    'DocumentChunk',

    # Tokens
    'estimate_tokens',
    'truncate_to_token_length',
]
