"""Embedding and classification services used by the indexing steps."""

from .embeddings import EmbeddingManager
from .classifier import ContentClassifier, is_valid_content_meta

__all__ = ['EmbeddingManager', 'ContentClassifier', 'is_valid_content_meta']
