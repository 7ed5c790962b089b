"""
Error taxonomy for the store and retrieval layers.
A missing record is not an error: get() returns None and delete() returns False.
"""


class MemoryStoreError(Exception):
    """Base class for memory store errors."""


class StorageError(MemoryStoreError):
    """I/O or serialization failure on put/get/delete/scan. Never retried internally."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class DimensionMismatch(MemoryStoreError, ValueError):
    """A vector does not have the store-wide embedding dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class MalformedEmbedding(MemoryStoreError, ValueError):
    """Persisted or supplied embedding data cannot be decoded as a numeric vector."""


class EmbeddingUnavailable(MemoryStoreError):
    """The embedder returned no vector or failed."""
