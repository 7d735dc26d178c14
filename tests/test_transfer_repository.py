"""Integration tests for the transfer repository and its SQLite schema."""

import inspect
import re
import sqlite3
from datetime import datetime, timezone

import pytest

from common.types import Placement
from controller.exceptions import ValidationError
from controller.repositories import transfer_repository


def placement(node_id, index, size=1):
    return Placement(node_id=node_id, locator=f"node{node_id}/t1/chunk_{index}", size=size, checksum=f"sum{index}")


def get_table_columns(db_path, table_name: str) -> set:
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    cursor.execute(f"PRAGMA table_info({table_name})")
    columns = {row[1] for row in cursor.fetchall()}
    conn.close()
    return columns


class TestTransferRepository:

    def test_get_unknown_returns_none(self, repository):
        assert repository.get('missing') is None

    def test_first_placement_creates_transfer(self, repository):
        created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        transfer = repository.upsert_placement('t1', 'report.pdf', 3, 'docs', 1, placement(2, 1), created_at=created)

        assert transfer.filename == 'report.pdf'
        assert transfer.target_path == 'docs'
        assert transfer.total_chunks == 3
        assert transfer.created_at == created
        assert transfer.chunks == {1: placement(2, 1)}
        assert transfer.received == 1
        assert transfer.missing_indices() == [0, 2]
        assert not transfer.is_complete()

    def test_later_placements_keep_creation_fields(self, repository):
        repository.upsert_placement('t1', 'report.pdf', 2, 'docs', 0, placement(1, 0))
        transfer = repository.upsert_placement('t1', 'other.pdf', 2, 'elsewhere', 1, placement(2, 1))

        assert transfer.filename == 'report.pdf'
        assert transfer.target_path == 'docs'
        assert transfer.is_complete()

    def test_resent_index_replaces_placement(self, repository):
        repository.upsert_placement('t1', 'f', 3, '', 0, placement(1, 0, size=5))
        transfer = repository.upsert_placement('t1', 'f', 3, '', 0, placement(1, 0, size=9))

        assert transfer.received == 1
        assert transfer.chunks[0].size == 9
        assert not transfer.is_complete()

    def test_total_chunks_mismatch_rejected(self, repository):
        repository.upsert_placement('t1', 'f', 3, '', 0, placement(1, 0))

        with pytest.raises(ValidationError):
            repository.upsert_placement('t1', 'f', 4, '', 1, placement(2, 1))

        assert repository.get('t1').chunks.keys() == {0}

    def test_index_out_of_range_rejected_without_creating(self, repository):
        with pytest.raises(ValidationError):
            repository.upsert_placement('t1', 'f', 2, '', 2, placement(1, 2))

        assert repository.get('t1') is None

    def test_delete_removes_transfer_and_placements(self, repository, settings):
        repository.upsert_placement('t1', 'f', 2, '', 0, placement(1, 0))

        assert repository.delete('t1') is True
        assert repository.get('t1') is None
        assert repository.delete('t1') is False

        conn = sqlite3.connect(settings.database_path)
        count = conn.execute("SELECT COUNT(*) FROM placements WHERE transfer_id = 't1'").fetchone()[0]
        conn.close()
        assert count == 0

    def test_list_transfers_oldest_first(self, repository):
        repository.upsert_placement('b', 'f', 1, '', 0, placement(1, 0),
                                    created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
        repository.upsert_placement('a', 'f', 1, '', 0, placement(1, 0),
                                    created_at=datetime(2024, 1, 3, tzinfo=timezone.utc))

        assert [t.transfer_id for t in repository.list_transfers()] == ['b', 'a']


class TestTransferSchema:
    """Validate TransferRepository SQL queries against schema."""

    def test_transfers_table_columns(self, repository, settings):
        assert get_table_columns(settings.database_path, 'transfers') == {
            'transfer_id', 'filename', 'total_chunks', 'target_path', 'created_at',
        }

    def test_placements_table_columns(self, repository, settings):
        assert get_table_columns(settings.database_path, 'placements') == {
            'transfer_id', 'chunk_index', 'node_id', 'locator', 'size', 'checksum', 'updated_at',
        }

    @pytest.mark.parametrize('table', ['transfers', 'placements'])
    def test_select_queries_use_existing_columns(self, repository, settings, table):
        source = inspect.getsource(transfer_repository)
        queries = re.findall(rf'SELECT\s+([\w\s,]+?)\s+FROM\s+{table}\b', source, re.IGNORECASE | re.DOTALL)
        columns = get_table_columns(settings.database_path, table)

        assert queries
        for selected in queries:
            for column in selected.split(','):
                name = column.strip().split()[-1].lower()
                assert name in columns, f"Column {name} not in {table} table schema"
