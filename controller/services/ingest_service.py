"""Chunk ingest: validate, route, persist, and record one chunk."""

from dataclasses import dataclass
from datetime import datetime, timezone

from common.logging_config import get_logger
from common.types import Placement
from controller.chunk_router import ChunkRouter
from controller.exceptions import NodeStorageUnavailableError, ValidationError
from controller.paths import validate_filename, validate_target_path, validate_transfer_id
from controller.repositories.transfer_repository import TransferRepository
from controller.transfer_locks import TransferLockManager
from nodestore.base import InvalidLocatorError, NodeStorage, NodeStorageError
from nodestore.checksum import compute_checksum

logger = get_logger(__name__)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    complete: bool
    received: int
    expected: int
    node_id: int


class IngestService:
    def __init__(
        self,
        repository: TransferRepository,
        router: ChunkRouter,
        storage: NodeStorage,
        locks: TransferLockManager,
    ):
        self.repository = repository
        self.router = router
        self.storage = storage
        self.locks = locks

    async def ingest_chunk(
        self,
        transfer_id: str,
        filename: str,
        index: int,
        total_chunks: int,
        target_path: str,
        payload: bytes,
    ) -> IngestResult:
        """
        Persist one chunk and record its placement.

        The chunk bytes are written before the metadata lock is taken; only
        the read-modify-write of the transfer record is serialized per id.
        Each put yields its own locator, so the recorded checksum always
        describes the bytes the placement points at. The bytes of a
        replaced placement are deleted once the new one is committed.

        Args:
            transfer_id: Client-generated transfer id
            filename: Target artifact name
            index: Chunk index in [0, total_chunks)
            total_chunks: Expected number of chunks (> 0)
            target_path: Destination directory relative to the artifact root
            payload: Chunk bytes

        Returns:
            IngestResult with completeness computed from the index set

        Raises:
            ValidationError: If the request is malformed; nothing is stored
            NodeStorageUnavailableError: If the chunk bytes cannot be persisted
        """
        validate_transfer_id(transfer_id)
        validate_filename(filename)
        target_path = validate_target_path(target_path)

        if total_chunks <= 0:
            raise ValidationError(f"total_chunks must be positive, got {total_chunks}")
        if not 0 <= index < total_chunks:
            raise ValidationError(f"index {index} outside [0, {total_chunks})")
        if payload is None:
            raise ValidationError("Chunk payload is required")

        existing = self.repository.get(transfer_id)
        if existing is not None and existing.total_chunks != total_chunks:
            raise ValidationError(
                f"Transfer {transfer_id} expects {existing.total_chunks} chunks, request says {total_chunks}"
            )

        node_id = self.router.route(index)

        try:
            locator = await self.storage.put(node_id, transfer_id, index, payload)
        except InvalidLocatorError as e:
            raise ValidationError(str(e)) from e
        except (NodeStorageError, OSError) as e:
            logger.error(f"Failed to store chunk {index} of {transfer_id} on node {node_id}: {e}")
            raise NodeStorageUnavailableError(
                f"Could not store chunk {index} of transfer {transfer_id} on node {node_id}"
            ) from e

        placement = Placement(
            node_id=node_id,
            locator=locator,
            size=len(payload),
            checksum=compute_checksum(payload),
        )

        async with self.locks.hold(transfer_id):
            previous = self.repository.get(transfer_id)
            try:
                transfer = self.repository.upsert_placement(
                    transfer_id=transfer_id,
                    filename=filename,
                    total_chunks=total_chunks,
                    target_path=target_path,
                    index=index,
                    placement=placement,
                    created_at=datetime.now(timezone.utc),
                )
            except ValidationError:
                await self._discard(locator)
                raise

        replaced = previous.chunks.get(index) if previous is not None else None
        if replaced is not None and replaced.locator != locator:
            await self._discard(replaced.locator)

        complete = transfer.is_complete()
        logger.info(
            f"Accepted chunk {index + 1}/{total_chunks} of {transfer_id} on node {node_id} "
            f"({len(payload)} bytes, {transfer.received}/{transfer.total_chunks} received, complete={complete})"
        )

        return IngestResult(
            accepted=True,
            complete=complete,
            received=transfer.received,
            expected=transfer.total_chunks,
            node_id=node_id,
        )

    async def _discard(self, locator: str) -> None:
        """Delete chunk bytes no placement refers to; failures leave an orphan."""
        try:
            await self.storage.delete(locator)
        except (NodeStorageError, OSError) as e:
            logger.warning(f"Could not delete unreferenced chunk {locator}: {e}")
