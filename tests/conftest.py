"""Shared pytest fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from controller.chunk_router import ChunkRouter
from controller.config import ControllerSettings
from controller.database import init_database
from controller.main import create_app
from controller.repositories.transfer_repository import TransferRepository
from controller.services.ingest_service import IngestService
from controller.services.merge_service import MergeService
from controller.services.status_service import StatusService
from controller.transfer_locks import TransferLockManager
from nodestore.local_storage import LocalNodeStorage


@pytest.fixture
def node_count():
    """Number of node partitions; tests override it with parametrize."""
    return 3


@pytest.fixture
def settings(tmp_path, node_count):
    """
    Controller settings rooted in a temporary directory.
    """
    return ControllerSettings(
        database_path=tmp_path / 'data' / 'metadata.db',
        chunk_root=tmp_path / 'data' / 'chunks',
        artifact_root=tmp_path / 'data' / 'uploads',
        node_count=node_count,
    )


@pytest.fixture
def storage(settings):
    storage = LocalNodeStorage(settings.chunk_root, settings.node_count)
    storage.ensure_nodes()
    return storage


@pytest.fixture
def repository(settings):
    init_database(settings.database_path)
    return TransferRepository(settings.database_path)


@pytest.fixture
def locks():
    return TransferLockManager()


@pytest.fixture
def ingest_service(repository, storage, locks, settings):
    return IngestService(repository, ChunkRouter(settings.node_count), storage, locks)


@pytest.fixture
def merge_service(repository, storage, locks, settings):
    return MergeService(repository, storage, locks, settings.artifact_root)


@pytest.fixture
def status_service(repository):
    return StatusService(repository)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .splitstore directory
    """
    config_dir = tmp_path / '.splitstore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Config instance with fast retries and small chunks.
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['retry_backoff_base'] = 0
    config.data['chunk_size'] = 4
    return config


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a 10 byte sample file (three 4 byte chunks).
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(b'0123456789')
    return file_path
