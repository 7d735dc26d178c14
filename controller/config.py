"""Configuration settings for the Controller server."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

from common.constants import DEFAULT_NODE_COUNT


BACKEND_LOCAL = "local"
BACKEND_GRPC = "grpc"


@dataclass(frozen=True)
class ControllerSettings:
    """
    Settings resolved once at startup and injected into every component.
    """
    database_path: Path
    chunk_root: Path
    artifact_root: Path
    node_count: int = DEFAULT_NODE_COUNT
    host: str = "0.0.0.0"
    port: int = 8000
    nodestore_backend: str = BACKEND_LOCAL
    nodestore_addresses: Dict[int, str] = field(default_factory=dict)

    def with_overrides(self, **changes) -> 'ControllerSettings':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


def parse_nodestore_addresses(raw: str, node_count: int) -> Dict[int, str]:
    """
    Parse node store addresses.

    Accepts either a single 'host:port' served for every node, or an
    explicit 'K=host:port' list separated by commas.

    Args:
        raw: Address list
        node_count: Number of partitions N

    Returns:
        Mapping node_id -> address for every node in [1, N]

    Raises:
        ValueError: If the address list is malformed or leaves a node unmapped
    """
    raw = raw.strip()
    if not raw:
        return {}

    if '=' not in raw:
        return {node_id: raw for node_id in range(1, node_count + 1)}

    addresses = {}
    for item in raw.split(','):
        item = item.strip()
        if not item:
            continue
        node_part, _, address = item.partition('=')
        node_id = int(node_part)
        if not 1 <= node_id <= node_count or not address.strip():
            raise ValueError(f"Invalid node store address entry: {item!r}")
        addresses[node_id] = address.strip()

    unmapped = [n for n in range(1, node_count + 1) if n not in addresses]
    if unmapped:
        raise ValueError(f"No node store address for nodes {unmapped}")
    return addresses


def load_settings(env: Optional[Dict[str, str]] = None) -> ControllerSettings:
    """
    Build ControllerSettings from environment variables.

    Args:
        env: Mapping to read instead of os.environ

    Returns:
        Resolved settings

    Raises:
        ValueError: If a value is invalid (e.g., node count < 1)
    """
    env = os.environ if env is None else env

    data_dir = Path(env.get("SPLITSTORE_DATA_DIR", "/app/data"))
    node_count = int(env.get("SPLITSTORE_NODE_COUNT", str(DEFAULT_NODE_COUNT)))
    if node_count < 1:
        raise ValueError(f"SPLITSTORE_NODE_COUNT must be >= 1, got {node_count}")

    backend = env.get("SPLITSTORE_NODESTORE_BACKEND", BACKEND_LOCAL).lower()
    if backend not in (BACKEND_LOCAL, BACKEND_GRPC):
        raise ValueError(f"Unknown node store backend: {backend}")

    addresses = parse_nodestore_addresses(env.get("SPLITSTORE_NODESTORE_ADDRESSES", ""), node_count)
    if backend == BACKEND_GRPC and not addresses:
        raise ValueError("SPLITSTORE_NODESTORE_ADDRESSES is required for the grpc backend")

    return ControllerSettings(
        database_path=Path(env.get("SPLITSTORE_DATABASE_PATH", str(data_dir / "metadata.db"))),
        chunk_root=Path(env.get("SPLITSTORE_CHUNK_ROOT", str(data_dir / "chunks"))),
        artifact_root=Path(env.get("SPLITSTORE_ARTIFACT_ROOT", str(data_dir / "uploads"))),
        node_count=node_count,
        host=env.get("SPLITSTORE_HOST", "0.0.0.0"),
        port=int(env.get("SPLITSTORE_PORT", "8000")),
        nodestore_backend=backend,
        nodestore_addresses=addresses,
    )
