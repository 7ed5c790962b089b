"""
Vector layer - embedding codec, embedding providers and exact similarity index.
"""

# Package initialization for vector module
from .index import VectorIndex, squared_euclidean
from .types import EmbeddedRow, QueryResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding

__all__ = [
    'VectorIndex',
    'squared_euclidean',
    'EmbeddedRow',
    'QueryResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding'
]
