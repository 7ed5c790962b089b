"""
Embedding codec - converts float vectors to and from the persisted column form.

The canonical form is a JSON array of numbers formatted to 8 decimal places,
which keeps decode(encode(v)) well within 1e-6 of v. Legacy stores written by
the mobile app hold packed little-endian float32 blobs; decode() reads those
too so migrations can convert them.
"""

import json
from typing import Sequence, Union

import numpy as np
import numpy.typing as npt

from ..core.errors import DimensionMismatch, MalformedEmbedding

RawEmbedding = Union[str, bytes, bytearray, memoryview]


def as_vector(vector: Union[Sequence[float], npt.ArrayLike]) -> np.ndarray:
    """Coerce a list or array into a 1-D float64 vector."""
    try:
        array = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise MalformedEmbedding(f"Embedding is not numeric: {e}") from e

    if array.ndim != 1:
        raise MalformedEmbedding(f"Embedding must be one-dimensional, got shape {array.shape}")
    return array


def ensure_finite(array: np.ndarray) -> np.ndarray:
    """Raise MalformedEmbedding if any component is NaN or infinite."""
    if not np.all(np.isfinite(array)):
        raise MalformedEmbedding("Embedding contains NaN or infinite components")
    return array


def encode(vector: Union[Sequence[float], npt.ArrayLike]) -> str:
    """Encode a vector as a JSON array text with 8 decimal digits."""
    array = ensure_finite(as_vector(vector))
    return "[" + ",".join("%.8f" % value for value in array) + "]"


def decode(raw: RawEmbedding) -> np.ndarray:
    """
    Decode a persisted embedding.

    Args:
        raw: JSON array text, or a packed little-endian float32 blob

    Returns:
        1-D float64 numpy array

    Raises:
        MalformedEmbedding: if the value cannot be parsed as a flat numeric array
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return _decode_blob(bytes(raw))

    if not isinstance(raw, str):
        raise MalformedEmbedding(f"Unsupported embedding column type: {type(raw).__name__}")

    try:
        values = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEmbedding(f"Embedding is not valid JSON: {e}") from e

    if not isinstance(values, list) or not values:
        raise MalformedEmbedding("Embedding must be a non-empty JSON array")

    # bool is an int subclass; json never produces it for numbers
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
        raise MalformedEmbedding("Embedding array must contain only numbers")

    return ensure_finite(np.asarray(values, dtype=np.float64))


def _decode_blob(blob: bytes) -> np.ndarray:
    if not blob or len(blob) % 4 != 0:
        raise MalformedEmbedding(f"Packed float32 blob has invalid length {len(blob)}")

    return ensure_finite(np.frombuffer(blob, dtype="<f4").astype(np.float64))


def validate_dimension(vector: Union[Sequence[float], npt.ArrayLike], expected: int) -> None:
    """Raise DimensionMismatch unless the vector has exactly `expected` components."""
    actual = len(vector)
    if actual != expected:
        raise DimensionMismatch(expected, actual)
