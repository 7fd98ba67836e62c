"""Fixed-width binary encoding for persisted embedding vectors.

Each vector is stored as a sequence of 4-byte little-endian IEEE-754
floats, so a blob's length is always ``4 * dimension``.  Readers reject
anything else rather than guessing at a truncated vector.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from docvault.utils.errors import VectorEncodingError

# Explicit little-endian float32 regardless of host byte order.
_DTYPE = np.dtype("<f4")
_ITEM_SIZE = _DTYPE.itemsize


def encode_vector(vector: Sequence[float] | np.ndarray) -> bytes:
    """Serialize *vector* to little-endian float32 bytes."""
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    """Deserialize a blob produced by :func:`encode_vector`.

    Raises
    ------
    VectorEncodingError
        If the blob length is not a multiple of 4.
    """
    if len(blob) % _ITEM_SIZE != 0:
        raise VectorEncodingError(
            message=f"Vector blob length {len(blob)} is not a multiple of {_ITEM_SIZE}",
        )
    # Copy so the array owns its memory and is writable.
    return np.frombuffer(blob, dtype=_DTYPE).astype(np.float32)


def dimension_of(blob: bytes) -> int:
    """Return the number of floats in a valid blob."""
    if len(blob) % _ITEM_SIZE != 0:
        raise VectorEncodingError(
            message=f"Vector blob length {len(blob)} is not a multiple of {_ITEM_SIZE}",
        )
    return len(blob) // _ITEM_SIZE
