"""Split local files into fixed-size chunks."""

import os
from typing import Iterator, Tuple

from common.constants import CHUNK_SIZE_BYTES


def chunk_count(size: int, chunk_size: int = CHUNK_SIZE_BYTES) -> int:
    """
    Number of chunks needed for a file of the given size.

    An empty file still travels as one empty chunk.

    Raises:
        ValueError: If size is negative or chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if size < 0:
        raise ValueError(f"size must be non-negative, got {size}")
    if size == 0:
        return 1
    return (size + chunk_size - 1) // chunk_size


def read_chunk(path: str, index: int, chunk_size: int = CHUNK_SIZE_BYTES) -> bytes:
    """Read the bytes of chunk `index` from a file."""
    with open(path, 'rb') as f:
        f.seek(index * chunk_size)
        return f.read(chunk_size)


def iter_chunks(path: str, chunk_size: int = CHUNK_SIZE_BYTES) -> Iterator[Tuple[int, bytes]]:
    """
    Yield (index, bytes) for every chunk of a file, in order.

    Args:
        path: File to split
        chunk_size: Bytes per chunk; the last chunk may be shorter

    Yields:
        Tuples of chunk index and chunk bytes
    """
    if os.path.getsize(path) == 0:
        yield 0, b''
        return

    with open(path, 'rb') as f:
        index = 0
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            yield index, data
            index += 1
