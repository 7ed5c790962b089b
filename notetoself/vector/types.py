"""
Vector layer value types.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Union

import numpy as np

from ..core.schema import ChatMessageRecord, JournalRecord


class EmbeddedRow(NamedTuple):
    """One embedded record as read from the store for similarity search."""

    id: uuid.UUID
    """Identifier of the record"""

    created_at: datetime
    """Creation time, used to break distance ties (most recent first)"""

    vector: np.ndarray
    """Decoded embedding, always EMBEDDING_DIM long"""


@dataclass(frozen=True)
class QueryResult:
    """Represents a search result from the vector index."""

    record: Union[JournalRecord, ChatMessageRecord]
    """The matching record"""

    distance: float
    """Squared Euclidean distance to the query vector (lower is closer)"""
