"""Manages chunk files in per-node partition directories on local disk."""

import os
import re
import uuid
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, List

from common.constants import CHUNK_FILE_PREFIX, NODE_DIR_PREFIX, STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from nodestore.base import ChunkUnavailableError, InvalidLocatorError, NodeStorage

logger = get_logger(__name__)

SAFE_SEGMENT = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$')


def is_safe_segment(value: str) -> bool:
    """
    Check whether a value can be used verbatim as one path segment.

    Args:
        value: Candidate directory or file name

    Returns:
        True if the value is a single, non-traversing path segment
    """
    return bool(SAFE_SEGMENT.match(value)) and value not in ('.', '..')


class LocalNodeStorage(NodeStorage):
    """
    Node storage backed by directories root/node1 .. root/nodeN.

    A chunk lives at node{K}/{transfer_id}/chunk_{index}.{version}; that
    relative path is its locator. Every put writes a fresh version, so a
    locator always names the bytes of exactly one put and a retried chunk
    never overwrites bytes an earlier placement still points at.
    """

    def __init__(self, root: Path, node_count: int, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        """
        Initialize storage over a partition root.

        Args:
            root: Directory holding the node partitions
            node_count: Number of partitions N (ids 1..N)
            piece_size: Size of pieces yielded by get
        """
        if node_count < 1:
            raise ValueError(f"node_count must be >= 1, got {node_count}")
        self.root = Path(root)
        self.node_count = node_count
        self.piece_size = piece_size

    def ensure_nodes(self) -> List[Path]:
        """
        Create the partition directories if they do not exist yet.

        Returns:
            List of partition directory paths
        """
        paths = []
        for node_id in range(1, self.node_count + 1):
            path = self.root / f"{NODE_DIR_PREFIX}{node_id}"
            path.mkdir(parents=True, exist_ok=True)
            paths.append(path)
        logger.info(f"Node partitions ready under {self.root} (N={self.node_count})")
        return paths

    def make_locator(self, node_id: int, transfer_id: str, index: int, version: str) -> str:
        """
        Build the locator for one stored version of a chunk.

        Raises:
            InvalidLocatorError: If node_id is out of range or transfer_id is unsafe
        """
        if not 1 <= node_id <= self.node_count:
            raise InvalidLocatorError(f"Node {node_id} outside [1, {self.node_count}]")
        if not is_safe_segment(transfer_id):
            raise InvalidLocatorError(f"Transfer id {transfer_id!r} is not a safe path segment")
        if index < 0:
            raise InvalidLocatorError(f"Chunk index must be non-negative, got {index}")
        if not is_safe_segment(version):
            raise InvalidLocatorError(f"Chunk version {version!r} is not a safe path segment")
        return f"{NODE_DIR_PREFIX}{node_id}/{transfer_id}/{CHUNK_FILE_PREFIX}{index}.{version}"

    def resolve(self, locator: str) -> Path:
        """
        Map a locator back to an absolute path inside the root.

        Raises:
            InvalidLocatorError: If the locator does not have the expected shape
        """
        parts = PurePosixPath(locator).parts
        if len(parts) != 3 or not all(is_safe_segment(part) for part in parts):
            raise InvalidLocatorError(f"Malformed locator: {locator!r}")

        node_dir, _, chunk_name = parts
        if not node_dir.startswith(NODE_DIR_PREFIX) or not chunk_name.startswith(CHUNK_FILE_PREFIX):
            raise InvalidLocatorError(f"Malformed locator: {locator!r}")

        return self.root.joinpath(*parts)

    async def put(self, node_id: int, transfer_id: str, index: int, data: bytes) -> str:
        locator = self.make_locator(node_id, transfer_id, index, uuid.uuid4().hex)
        path = self.resolve(locator)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_name(f"{path.name}.tmp-{uuid.uuid4().hex}")
        try:
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

        logger.debug(f"Stored {len(data)} bytes at {locator}")
        return locator

    async def get(self, locator: str) -> AsyncIterator[bytes]:
        path = self.resolve(locator)
        try:
            f = open(path, 'rb')
        except OSError as e:
            raise ChunkUnavailableError(f"Cannot open chunk {locator}: {e}") from e

        with f:
            while True:
                try:
                    piece = f.read(self.piece_size)
                except OSError as e:
                    raise ChunkUnavailableError(f"Cannot read chunk {locator}: {e}") from e
                if not piece:
                    break
                yield piece

    async def delete(self, locator: str) -> bool:
        path = self.resolve(locator)
        if not path.exists():
            return False

        path.unlink()
        try:
            path.parent.rmdir()
        except OSError:
            # transfer folder still holds other chunks of this node
            pass
        logger.debug(f"Deleted chunk {locator}")
        return True

    async def ping(self) -> bool:
        return self.root.is_dir()

    def list_locators(self, transfer_id: str = None) -> List[str]:
        """
        List locators of every stored chunk, optionally for one transfer.

        Args:
            transfer_id: Restrict the listing to this transfer

        Returns:
            Sorted list of locators
        """
        pattern = f"{NODE_DIR_PREFIX}*/{transfer_id or '*'}/{CHUNK_FILE_PREFIX}*"
        locators = []
        for path in self.root.glob(pattern):
            if '.tmp-' in path.name:
                continue
            locators.append(path.relative_to(self.root).as_posix())
        return sorted(locators)
