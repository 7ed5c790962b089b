"""
Exact nearest-neighbour search over the embeddings held in the document store.
Distance is squared Euclidean; a linear scan is enough for a few thousand records.
"""

import heapq
from typing import List, Sequence, Union

import numpy as np
import numpy.typing as npt

from . import codec
from .types import QueryResult
from ..core.schema import RecordType, to_micros

from util.logging import logger


def squared_euclidean(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Squared Euclidean distance from `query` to every row of `matrix`."""
    diff = matrix - query
    return np.einsum("ij,ij->i", diff, diff)


class VectorIndex:
    """Store-backed similarity search; reads current store state on every query."""

    def __init__(self, store, embedding_dim: int = None):
        self.store = store
        self.embedding_dim = embedding_dim or store.embedding_dim

    def query(self, vector: Union[Sequence[float], npt.ArrayLike], record_type: RecordType, k: int) -> List[QueryResult]:
        """
        Return the k records of `record_type` closest to `vector`, nearest first.

        Ties on distance go to the most recently created record; equal
        timestamps fall back to id order, so the ranking is total and
        query(q, k1) is always a prefix of query(q, k2) for k1 < k2.

        Raises:
            DimensionMismatch: if the query vector has the wrong length
            MalformedEmbedding: if the query vector is not numeric
        """
        query_vector = codec.as_vector(vector)
        codec.validate_dimension(query_vector, self.embedding_dim)

        if k <= 0:
            return []

        rows = list(self.store.all_with_embedding(record_type))
        if not rows:
            return []

        distances = squared_euclidean(np.vstack([row.vector for row in rows]), query_vector)
        ranked = heapq.nsmallest(
            k,
            range(len(rows)),
            key=lambda i: (float(distances[i]), -to_micros(rows[i].created_at), str(rows[i].id))
        )

        records = self.store.get_many([rows[i].id for i in ranked], record_type)
        # A record deleted since the scan is dropped, not an error
        results = [
            QueryResult(record=records[rows[i].id], distance=float(distances[i]))
            for i in ranked if rows[i].id in records
        ]

        logger.log_vector_operation("query", record_type.value, {
            "k": k,
            "candidates": len(rows),
            "returned": len(results)
        })
        return results
