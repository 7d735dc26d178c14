"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables if they don't exist.

    Args:
        db_path: Location of the SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transfers (
                transfer_id TEXT PRIMARY KEY,
                filename TEXT NOT NULL,
                total_chunks INTEGER NOT NULL CHECK (total_chunks > 0),
                target_path TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS placements (
                transfer_id TEXT NOT NULL,
                chunk_index INTEGER NOT NULL CHECK (chunk_index >= 0),
                node_id INTEGER NOT NULL,
                locator TEXT NOT NULL,
                size INTEGER NOT NULL,
                checksum TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY(transfer_id, chunk_index),
                FOREIGN KEY(transfer_id) REFERENCES transfers(transfer_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_transfers_created_at ON transfers(created_at)
        """)

        conn.commit()


@contextmanager
def get_db_connection(db_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Connections run in autocommit mode (isolation_level=None) so callers
    open transactions explicitly with BEGIN IMMEDIATE.
    """
    conn = sqlite3.connect(str(db_path), timeout=30.0, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()
