"""Tests for CLI configuration module."""

import json

import pytest

from cli.config import Config
from common.constants import CHUNK_SIZE_BYTES, DEFAULT_UPLOAD_CONCURRENCY


def test_config_creates_default_file(tmp_path):
    """Test that config file is created with defaults if missing."""
    config_path = tmp_path / '.splitstore' / 'config.json'
    config = Config(config_path)

    assert config_path.exists()
    assert config.data['controller_port'] == 8000
    assert config.data['timeout'] == 30
    assert config.data['max_retries'] == 3
    assert config.get_chunk_size() == CHUNK_SIZE_BYTES
    assert config.get_concurrency() == DEFAULT_UPLOAD_CONCURRENCY == 3


def test_config_loads_existing_file(tmp_path):
    """Test loading existing config file."""
    config_path = tmp_path / '.splitstore' / 'config.json'
    config_path.parent.mkdir(parents=True)
    with open(config_path, 'w') as f:
        json.dump({'controller_host': 'example.com', 'controller_port': 9000, 'concurrency': 8}, f)

    config = Config(config_path)

    assert config.get_base_url() == 'http://example.com:9000'
    assert config.get_concurrency() == 8
    assert config.data['timeout'] == 30


def test_corrupted_config_backed_up(tmp_path):
    """Test that an unparsable config falls back to defaults and is backed up."""
    config_path = tmp_path / '.splitstore' / 'config.json'
    config_path.parent.mkdir(parents=True)
    config_path.write_text('{not json')

    config = Config(config_path)

    assert config.data['max_retries'] == 3
    assert config_path.with_suffix('.json.bak').read_text() == '{not json'


def test_save_persists_changes(temp_config):
    temp_config.data['concurrency'] = 5
    temp_config.save()

    with open(temp_config.config_path, 'r') as f:
        assert json.load(f)['concurrency'] == 5


def test_retry_config(temp_config):
    retry = temp_config.get_retry_config()
    assert retry['max_retries'] == 3
    assert retry['retry_backoff_base'] == 0
    assert retry['retry_backoff_multiplier'] == 2


def test_invalid_chunk_size(temp_config):
    temp_config.data['chunk_size'] = 0
    with pytest.raises(ValueError):
        temp_config.get_chunk_size()


def test_concurrency_at_least_one(temp_config):
    temp_config.data['concurrency'] = 0
    assert temp_config.get_concurrency() == 1
