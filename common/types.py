"""Shared data type definitions (Transfer, Placement, status/result records)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List


@dataclass(frozen=True)
class Placement:
    """
    Where the bytes of one chunk live and how to retrieve them.
    """
    node_id: int
    locator: str
    size: int = 0
    checksum: str = ""


@dataclass
class Transfer:
    """
    Metadata for one chunked upload, from first chunk to merge.
    """
    transfer_id: str
    filename: str
    total_chunks: int
    target_path: str
    created_at: datetime
    chunks: Dict[int, Placement] = field(default_factory=dict)

    @property
    def received(self) -> int:
        """Number of distinct indices inside [0, total_chunks) with a placement."""
        return sum(1 for index in self.chunks if 0 <= index < self.total_chunks)

    def missing_indices(self) -> List[int]:
        """
        Indices in [0, total_chunks) that have no placement yet.

        Returns:
            Sorted list of missing chunk indices
        """
        return [index for index in range(self.total_chunks) if index not in self.chunks]

    def is_complete(self) -> bool:
        """
        Check completeness against the index set, never the entry count.

        Returns:
            True if every index in [0, total_chunks) has a placement
        """
        return all(index in self.chunks for index in range(self.total_chunks))

    def ordered_placements(self) -> List[tuple]:
        """
        Placements in ascending index order.

        Returns:
            List of (index, Placement) tuples
        """
        return sorted(self.chunks.items())
