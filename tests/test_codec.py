"""
Tests for the embedding codec (JSON text and legacy float32 blobs).
"""

import random
import struct

import numpy as np
import pytest

from notetoself.core.errors import DimensionMismatch, MalformedEmbedding
from notetoself.vector import codec


def test_decode_of_encode_is_within_tolerance():
    """Encoded vectors decode back to within 1e-6 per component."""
    rng = random.Random(7)
    for dim in (1, 8, 384, 512):
        vector = [rng.uniform(-10, 10) for _ in range(dim)]
        decoded = codec.decode(codec.encode(vector))

        assert decoded.shape == (dim,)
        assert np.max(np.abs(decoded - np.array(vector))) < 1e-6


def test_encode_format():
    """Encoding is a compact JSON array with 8 decimal places."""
    assert codec.encode([1, -0.5, 0.123456789]) == "[1.00000000,-0.50000000,0.12345679]"


def test_encode_rejects_non_finite():
    """NaN and infinity cannot be persisted."""
    with pytest.raises(MalformedEmbedding):
        codec.encode([0.1, float("nan")])
    with pytest.raises(MalformedEmbedding):
        codec.encode([float("inf"), 0.1])


def test_as_vector_rejects_nested_and_non_numeric():
    with pytest.raises(MalformedEmbedding):
        codec.as_vector([[1.0, 2.0], [3.0, 4.0]])
    with pytest.raises(MalformedEmbedding):
        codec.as_vector(["a", "b"])


@pytest.mark.parametrize("raw", [
    "not json",
    "{}",
    "[]",
    "[1, \"two\", 3]",
    "[1, true]",
    "[[1, 2]]",
    "[1, NaN]",
])
def test_decode_rejects_malformed_text(raw):
    """Anything other than a flat, non-empty, finite numeric array is malformed."""
    with pytest.raises(MalformedEmbedding):
        codec.decode(raw)


def test_decode_rejects_unsupported_type():
    with pytest.raises(MalformedEmbedding):
        codec.decode(42)


def test_decode_float32_blob():
    """Legacy packed little-endian float32 blobs decode to the same values."""
    blob = struct.pack("<4f", 1.0, -2.5, 0.25, 0.0)
    decoded = codec.decode(blob)

    assert decoded.dtype == np.float64
    assert decoded.tolist() == [1.0, -2.5, 0.25, 0.0]


@pytest.mark.parametrize("blob", [b"", b"\x00\x01\x02", struct.pack("<2f", 1.0, float("inf"))])
def test_decode_rejects_bad_blob(blob):
    with pytest.raises(MalformedEmbedding):
        codec.decode(blob)


def test_validate_dimension():
    codec.validate_dimension([0.0] * 8, 8)

    with pytest.raises(DimensionMismatch) as exc_info:
        codec.validate_dimension([0.0] * 7, 8)

    assert exc_info.value.expected == 8
    assert exc_info.value.actual == 7
    # Callers that only know about ValueError still catch it
    assert isinstance(exc_info.value, ValueError)
