"""Splits an in-memory buffer into ordered, size-bounded chunks."""

import math
from typing import Iterator, List, Optional

from common.types import Chunk


def effective_chunk_size(requested: Optional[int], max_chunk_size: int) -> int:
    """
    Clamp a requested chunk size to the configured ceiling.

    Args:
        requested: Chunk size asked for by the caller; 0 or None means "use the ceiling"
        max_chunk_size: Configured maximum chunk size in bytes

    Returns:
        Chunk size to split with
    """
    if not requested or requested <= 0:
        return max_chunk_size
    return min(requested, max_chunk_size)


def count_chunks(total_size: int, chunk_size: int) -> int:
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    return math.ceil(total_size / chunk_size)


def split_into_chunks(data: bytes, chunk_size: int) -> Iterator[Chunk]:
    """
    Yield consecutive chunks covering the buffer exactly once.

    Indices start at 0 and increase by 1; the last chunk holds the remainder.
    An empty buffer yields nothing.

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    view = memoryview(data)
    for chunk_index, start in enumerate(range(0, len(data), chunk_size)):
        yield Chunk(index=chunk_index, data=bytes(view[start:start + chunk_size]))


def split_buffer(data: bytes, chunk_size: int) -> List[Chunk]:
    return list(split_into_chunks(data, chunk_size))
