# linkfoundry Embeddings Module
# Turns content chunks into vectors using sentence transformers

import asyncio
import logging
import threading
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class EmbeddingManager:
    """Generates chunk embeddings; the model is loaded on first use"""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        """
        Initialize embedding manager

        Args:
            model_name: Sentence transformer model name
        """
        self.model_name = model_name
        self.model: Optional[SentenceTransformer] = None
        self._load_lock = threading.Lock()

    def _load_model(self) -> SentenceTransformer:
        """Load the sentence transformer model"""
        with self._load_lock:
            if self.model is None:
                logger.info(f"Loading embedding model: {self.model_name}")
                self.model = SentenceTransformer(self.model_name)
                logger.info(f"Model loaded. Embedding dimension: {self.model.get_sentence_embedding_dimension()}")
        return self.model

    def generate_embeddings_batch(self, texts: List[str]) -> List[np.ndarray]:
        """Generate embeddings for multiple texts efficiently"""
        model = self._load_model()
        cleaned_texts = [text.strip() if text else "" for text in texts]
        embeddings = model.encode(cleaned_texts, convert_to_numpy=True, show_progress_bar=False)
        return [emb for emb in embeddings]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Embed texts off the event loop; returns JSON-friendly float lists"""
        if not texts:
            return []
        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(None, self.generate_embeddings_batch, texts)
        return [emb.astype(np.float32).tolist() for emb in embeddings]
