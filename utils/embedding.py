from sentence_transformers import SentenceTransformer
import numpy as np
from typing import List, Optional, Sequence, Union
import asyncio
from functools import lru_cache
import re
import threading
import logging

from app.settings import settings

# Set up logging
logger = logging.getLogger(__name__)

class EmbeddingService:
    """
    Sentence-transformers wrapper used for document vectors and query vectors.

    The model loads on first use. Vectors are unit-normalized so cosine
    distance in pgvector ranks the same way as dot product.
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
                 expected_dim: Optional[int] = None):
        self.model_name = model_name
        self.expected_dim = expected_dim
        self.model = None
        self.embedding_dim = None
        self._load_lock = threading.Lock()

    def _load_model(self):
        """Lazy load the model (blocking; may download weights)"""
        with self._load_lock:
            if self.model is not None:
                return self.model
            logger.info(f"Loading embedding model: {self.model_name}")
            self.model = SentenceTransformer(self.model_name)
            self.embedding_dim = self.model.get_sentence_embedding_dimension()
            if self.expected_dim and self.embedding_dim != self.expected_dim:
                # Inserts into documents.embedding will fail with a dimension error
                logger.warning(
                    f"Model {self.model_name} produces {self.embedding_dim}-dim vectors "
                    f"but EMBEDDING_DIM is {self.expected_dim}"
                )
            logger.info(f"Model loaded. Embedding dimension: {self.embedding_dim}")
        return self.model

    async def encode_text(self, text: Union[str, List[str]],
                          normalize_embeddings: bool = True) -> np.ndarray:
        """
        Encode text into embeddings asynchronously

        Args:
            text: String or list of strings to encode
            normalize_embeddings: Whether to normalize embeddings to unit vectors
        """
        loop = asyncio.get_running_loop()
        model = self.model
        if model is None:
            # Construction reads (or downloads) weights from disk
            model = await loop.run_in_executor(None, self._load_model)

        if isinstance(text, str):
            text = self._preprocess_text(text)
        else:
            text = [self._preprocess_text(t) for t in text]

        # SentenceTransformer.encode is blocking
        embedding = await loop.run_in_executor(
            None,
            lambda: model.encode(text, normalize_embeddings=normalize_embeddings)
        )
        return np.asarray(embedding)

    async def embed(self, text: str) -> List[float]:
        """Query or document embedding as a plain list of floats"""
        vector = await self.encode_text(text)
        return vector.tolist()

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """One batched encode for several passages"""
        if not texts:
            return []
        vectors = await self.encode_text(list(texts))
        return [row.tolist() for row in vectors]

    def _preprocess_text(self, text: str) -> str:
        """Collapse whitespace and drop symbols; verse punctuation and quotes are kept"""
        text = re.sub(r'\s+', ' ', text.strip())
        text = re.sub(r'[^\w\s\.,;:!?\'"()-]', '', text)
        return text

# Global embedding service instance
@lru_cache(maxsize=1)
def get_embedding_service(model_name: Optional[str] = None) -> Optional[EmbeddingService]:
    """
    Get a cached embedding service instance, or None when embeddings are disabled
    (EMBEDDING_MODEL set to an empty string)
    """
    name = settings.EMBEDDING_MODEL if model_name is None else model_name
    if not name:
        return None
    return EmbeddingService(name, expected_dim=settings.EMBEDDING_DIM)
