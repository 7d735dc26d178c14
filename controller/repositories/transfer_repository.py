"""Transfer repository for database operations."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from common.logging_config import get_logger
from common.types import Placement, Transfer
from controller.database import get_db_connection
from controller.exceptions import ValidationError

logger = get_logger(__name__)


class TransferRepository:
    """
    Durable transfer_id -> Transfer mapping backed by SQLite.

    Every mutation runs inside a BEGIN IMMEDIATE transaction, and the
    (transfer_id, chunk_index) primary key on placements means a re-sent
    index replaces its earlier row instead of adding a second one.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def get(self, transfer_id: str) -> Optional[Transfer]:
        with get_db_connection(self.db_path) as conn:
            return self._load(conn, transfer_id)

    def upsert_placement(
        self,
        transfer_id: str,
        filename: str,
        total_chunks: int,
        target_path: str,
        index: int,
        placement: Placement,
        created_at: Optional[datetime] = None,
    ) -> Transfer:
        """
        Create the transfer if absent, then write or overwrite one placement.

        Args:
            transfer_id: Transfer to update
            filename: Artifact name, recorded only on creation
            total_chunks: Expected chunk count, fixed on creation
            target_path: Destination directory, recorded only on creation
            index: Chunk index being placed
            placement: Node and locator holding the chunk bytes
            created_at: Creation timestamp (defaults to now, UTC)

        Returns:
            The transfer as stored after the update

        Raises:
            ValidationError: If the stored total_chunks differs or index is out of range
        """
        now = datetime.now(timezone.utc)
        created_at = created_at or now

        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                cursor.execute(
                    """
                    INSERT OR IGNORE INTO transfers (transfer_id, filename, total_chunks, target_path, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (transfer_id, filename, total_chunks, target_path, created_at.isoformat())
                )
                if cursor.rowcount:
                    logger.info(f"Created transfer {transfer_id} ({filename}, {total_chunks} chunks)")

                cursor.execute(
                    "SELECT total_chunks FROM transfers WHERE transfer_id = ?",
                    (transfer_id,)
                )
                stored_total = cursor.fetchone()["total_chunks"]
                if stored_total != total_chunks:
                    raise ValidationError(
                        f"Transfer {transfer_id} expects {stored_total} chunks, request says {total_chunks}"
                    )
                if not 0 <= index < stored_total:
                    raise ValidationError(
                        f"Chunk index {index} outside [0, {stored_total}) for transfer {transfer_id}"
                    )

                cursor.execute(
                    """
                    INSERT OR REPLACE INTO placements
                    (transfer_id, chunk_index, node_id, locator, size, checksum, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        transfer_id,
                        index,
                        placement.node_id,
                        placement.locator,
                        placement.size,
                        placement.checksum,
                        now.isoformat(),
                    )
                )

                transfer = self._load(conn, transfer_id)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.debug(
            f"Placed chunk {index} of {transfer_id} on node {placement.node_id} "
            f"[{transfer.received}/{transfer.total_chunks}]"
        )
        return transfer

    def delete(self, transfer_id: str) -> bool:
        """
        Delete a transfer and all its placements.

        Returns:
            True if a transfer was deleted, False if none existed
        """
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                cursor.execute("DELETE FROM placements WHERE transfer_id = ?", (transfer_id,))
                cursor.execute("DELETE FROM transfers WHERE transfer_id = ?", (transfer_id,))
                deleted = cursor.rowcount > 0
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        if deleted:
            logger.info(f"Deleted transfer record {transfer_id}")
        return deleted

    def list_transfers(self) -> List[Transfer]:
        """
        List every stored transfer with its placements, oldest first.
        """
        with get_db_connection(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT transfer_id FROM transfers ORDER BY created_at, transfer_id")
            ids = [row["transfer_id"] for row in cursor.fetchall()]
            return [t for t in (self._load(conn, transfer_id) for transfer_id in ids) if t is not None]

    @staticmethod
    def _load(conn: sqlite3.Connection, transfer_id: str) -> Optional[Transfer]:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT transfer_id, filename, total_chunks, target_path, created_at
            FROM transfers
            WHERE transfer_id = ?
            """,
            (transfer_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None

        cursor.execute(
            """
            SELECT chunk_index, node_id, locator, size, checksum
            FROM placements
            WHERE transfer_id = ?
            ORDER BY chunk_index
            """,
            (transfer_id,)
        )
        chunks = {
            placement_row["chunk_index"]: Placement(
                node_id=placement_row["node_id"],
                locator=placement_row["locator"],
                size=placement_row["size"],
                checksum=placement_row["checksum"],
            )
            for placement_row in cursor.fetchall()
        }

        return Transfer(
            transfer_id=row["transfer_id"],
            filename=row["filename"],
            total_chunks=row["total_chunks"],
            target_path=row["target_path"],
            created_at=datetime.fromisoformat(row["created_at"]),
            chunks=chunks,
        )
