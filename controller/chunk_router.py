"""Deterministic chunk-to-node routing."""


def route(index: int, node_count: int) -> int:
    """
    Map a chunk index to a node id.

    Args:
        index: Chunk index (>= 0)
        node_count: Number of partitions N (>= 1)

    Returns:
        Node id (index mod N) + 1, in [1, N]

    Raises:
        ValueError: If index is negative or node_count < 1
    """
    if node_count < 1:
        raise ValueError(f"node_count must be >= 1, got {node_count}")
    if index < 0:
        raise ValueError(f"index must be >= 0, got {index}")
    return (index % node_count) + 1


class ChunkRouter:
    """
    Routes chunks over a partition count fixed at construction, so any
    retry of the same index lands on the same node.
    """

    def __init__(self, node_count: int):
        if node_count < 1:
            raise ValueError(f"node_count must be >= 1, got {node_count}")
        self._node_count = node_count

    @property
    def node_count(self) -> int:
        return self._node_count

    def route(self, index: int) -> int:
        return route(index, self._node_count)
