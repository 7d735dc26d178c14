"""Merge engine: stream a complete transfer's chunks, in order, into one artifact."""

import enum
import os
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, List

from common.constants import PARTIAL_ARTIFACT_SUFFIX
from common.logging_config import get_logger
from common.types import Transfer
from controller.exceptions import (
    ArtifactWriteError,
    IncompleteTransferError,
    MergeError,
    TransferNotFoundError,
)
from controller.paths import (
    logical_artifact_path,
    resolve_artifact_path,
    validate_filename,
    validate_target_path,
    validate_transfer_id,
)
from controller.repositories.transfer_repository import TransferRepository
from controller.transfer_locks import TransferLockManager
from nodestore.base import NodeStorage, NodeStorageError
from nodestore.checksum import IncrementalChecksumCalculator

logger = get_logger(__name__)


class MergeState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MergeResult:
    artifact_path: str
    size: int
    checksum: str
    chunks: int
    undeleted_chunks: List[str] = field(default_factory=list)


class _ChunkReadFailed(Exception):
    def __init__(self, index: int, reason: str):
        super().__init__(reason)
        self.index = index
        self.reason = reason


class MergeService:
    """
    Reassembles transfers into artifacts under artifact_root.

    One merge holds the transfer's lock from the completeness check until
    the record is deleted, so a repeated merge of the same id observes
    TransferNotFoundError once the first one has succeeded.
    """

    def __init__(
        self,
        repository: TransferRepository,
        storage: NodeStorage,
        locks: TransferLockManager,
        artifact_root: Path,
    ):
        self.repository = repository
        self.storage = storage
        self.locks = locks
        self.artifact_root = Path(artifact_root)

    async def merge(self, transfer_id: str, filename: str = "", target_path: str = "") -> MergeResult:
        """
        Merge every chunk of a transfer into artifact_root/target_path/filename.

        Empty filename or target_path fall back to the values recorded when
        the transfer was created.

        Args:
            transfer_id: Transfer to merge
            filename: Artifact name
            target_path: Destination directory relative to the artifact root

        Returns:
            MergeResult with the logical artifact path

        Raises:
            TransferNotFoundError: Unknown or already merged transfer
            IncompleteTransferError: Some index in [0, total_chunks) has no placement
            MergeError: A chunk could not be read; chunks and metadata are kept
            ArtifactWriteError: The destination could not be written
            ValidationError: filename or target_path is not acceptable
        """
        validate_transfer_id(transfer_id)

        async with self.locks.hold(transfer_id):
            transfer = self.repository.get(transfer_id)
            if transfer is None:
                raise TransferNotFoundError(transfer_id)

            if not transfer.is_complete():
                missing = transfer.missing_indices()
                logger.warning(
                    f"Merge refused for {transfer_id}: {transfer.received}/{transfer.total_chunks} chunks, "
                    f"missing {missing[:10]}{'...' if len(missing) > 10 else ''}"
                )
                raise IncompleteTransferError(
                    transfer_id, transfer.received, transfer.total_chunks, missing
                )

            filename = validate_filename(filename or transfer.filename)
            target_path = validate_target_path(target_path) if target_path else transfer.target_path
            destination = resolve_artifact_path(self.artifact_root, target_path, filename)

            size, checksum = await self._assemble(transfer, destination)
            undeleted = await self._delete_chunks(transfer)
            self.repository.delete(transfer_id)

        artifact_path = logical_artifact_path(target_path, filename)
        logger.info(
            f"Merged transfer {transfer_id} into {artifact_path} "
            f"({transfer.total_chunks} chunks, {size} bytes)"
        )
        return MergeResult(
            artifact_path=artifact_path,
            size=size,
            checksum=checksum,
            chunks=transfer.total_chunks,
            undeleted_chunks=undeleted,
        )

    async def _assemble(self, transfer: Transfer, destination: Path) -> tuple:
        """
        Write chunks 0..total_chunks-1 sequentially to a partial file, then rename it.

        Returns:
            Tuple of (artifact size, artifact SHA-256)
        """
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(f"Cannot create destination directory {destination.parent}: {e}") from e

        part_path = destination.with_name(f".{destination.name}.{transfer.transfer_id}{PARTIAL_ARTIFACT_SUFFIX}")
        artifact_checksum = IncrementalChecksumCalculator()
        state = MergeState.IDLE
        current = -1

        try:
            with open(part_path, 'wb') as out:
                for current, placement in transfer.ordered_placements():
                    state = MergeState.STREAMING
                    logger.debug(
                        f"Streaming chunk {current + 1}/{transfer.total_chunks} of {transfer.transfer_id} "
                        f"from node {placement.node_id}"
                    )
                    chunk_checksum = IncrementalChecksumCalculator()

                    async with aclosing(self._read_pieces(current, placement.locator)) as pieces:
                        async for piece in pieces:
                            chunk_checksum.update(piece)
                            artifact_checksum.update(piece)
                            out.write(piece)

                    if placement.checksum and (
                        chunk_checksum.size != placement.size
                        or chunk_checksum.finalize() != placement.checksum
                    ):
                        raise _ChunkReadFailed(
                            current,
                            f"content mismatch (expected {placement.size} bytes)"
                        )

                out.flush()
                os.fsync(out.fileno())

            os.replace(part_path, destination)
            state = MergeState.DONE
        except _ChunkReadFailed as failure:
            state = MergeState.FAILED
            self._discard(part_path)
            logger.error(
                f"Merge of {transfer.transfer_id} failed at chunk {failure.index}: {failure.reason} "
                f"[state={state.value}]"
            )
            raise MergeError(transfer.transfer_id, failure.index, failure.reason) from failure
        except OSError as e:
            state = MergeState.FAILED
            self._discard(part_path)
            logger.error(f"Merge of {transfer.transfer_id} could not write {destination}: {e}", exc_info=True)
            raise ArtifactWriteError(
                f"Cannot write artifact for transfer {transfer.transfer_id} (chunk {current}): {e}"
            ) from e

        return artifact_checksum.size, artifact_checksum.finalize()

    async def _read_pieces(self, index: int, locator: str) -> AsyncIterator[bytes]:
        """Stream one chunk, reporting any read failure against its index."""
        try:
            async for piece in self.storage.get(locator):
                yield piece
        except (NodeStorageError, OSError) as e:
            raise _ChunkReadFailed(index, str(e)) from e

    async def _delete_chunks(self, transfer: Transfer) -> List[str]:
        """
        Delete every chunk of a merged transfer from node storage.

        Returns:
            Locators that could not be deleted
        """
        undeleted = []
        for index, placement in transfer.ordered_placements():
            try:
                await self.storage.delete(placement.locator)
            except (NodeStorageError, OSError) as e:
                logger.warning(f"Could not delete chunk {index} of {transfer.transfer_id} at {placement.locator}: {e}")
                undeleted.append(placement.locator)

        if undeleted:
            logger.warning(f"{len(undeleted)} chunks of {transfer.transfer_id} left behind after merge")
        return undeleted

    @staticmethod
    def _discard(part_path: Path) -> None:
        try:
            part_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial artifact {part_path}: {e}")
