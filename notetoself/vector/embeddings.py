"""
Embedding providers. The store depends only on the IEmbeddingProvider
contract: embed_text() returns a vector, or None for blank text or when the
backend is unavailable. Callers validate the length on every call.
"""

from abc import ABC, abstractmethod
import hashlib
import math
import struct
from typing import List, Optional

from util.logging import logger


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> Optional[List[float]]:
        """Generate embedding vector for given text, or None if unavailable."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Each word is hashed into a unit vector and the word vectors are summed and
    normalized, so texts sharing words land near each other. Reproducible and
    free of model dependencies, which makes it the default offline provider.
    """

    def __init__(self, dimension: int = 512):
        self.dimension = dimension

    def _word_vector(self, word: str) -> List[float]:
        values = []
        counter = 0
        while len(values) < self.dimension:
            digest = hashlib.sha256(f"{word}:{counter}".encode("utf-8")).digest()
            # 8 unsigned 32-bit ints per digest, mapped to [-1, 1]
            for chunk in struct.unpack("<8I", digest):
                values.append((chunk / 2**32) * 2 - 1)
            counter += 1
        return values[:self.dimension]

    def embed_text(self, text: str) -> Optional[List[float]]:
        """Generate deterministic embedding vector using hash function."""
        words = text.lower().split()
        if not words:
            return None

        vector = [0.0] * self.dimension
        for word in words:
            for i, value in enumerate(self._word_vector(word)):
                vector[i] += value

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return None
        return [v / norm for v in vector]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use. A model that fails to load, or whose
    output dimension differs from `dimension` when one is given, makes the
    provider return None rather than raise, matching the embedder contract.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", dimension: Optional[int] = None):
        self.model_name = model_name
        self.expected_dimension = dimension
        self._model = None
        self._dimension = None
        self._load_failed = False

    @property
    def model(self):
        if self._model is None and not self._load_failed:
            try:
                from sentence_transformers import SentenceTransformer
                model = SentenceTransformer(self.model_name)
            except (ImportError, OSError) as e:
                self._load_failed = True
                logger.log_embedding_failure("model_unavailable", details={"model": self.model_name, "error": str(e)[:100]})
                return None

            model_dimension = model.get_sentence_embedding_dimension()
            if self.expected_dimension is not None and model_dimension != self.expected_dimension:
                self._load_failed = True
                logger.log_embedding_failure("dimension_mismatch", details={
                    "model": self.model_name,
                    "expected": self.expected_dimension,
                    "actual": model_dimension
                })
                return None

            self._model = model
            self._dimension = model_dimension
        return self._model

    def embed_text(self, text: str) -> Optional[List[float]]:
        """Generate embedding vector using sentence transformers."""
        if not text or not text.strip():
            return None
        if self.model is None:
            return None
        embedding = self.model.encode(text, convert_to_tensor=False)
        return [float(v) for v in embedding]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None and self.model is not None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension or 0
