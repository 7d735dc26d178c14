"""Configuration management for Splitstore CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.constants import CHUNK_SIZE_BYTES, DEFAULT_UPLOAD_CONCURRENCY
from common.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.splitstore' / 'config.json'


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "controller_host": os.environ.get("SPLITSTORE_CONTROLLER_HOST", "localhost"),
        "controller_port": int(os.environ.get("SPLITSTORE_CONTROLLER_PORT", "8000")),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_base": 0.5,
        "retry_backoff_multiplier": 2,
        "chunk_size": CHUNK_SIZE_BYTES,
        "concurrency": DEFAULT_UPLOAD_CONCURRENCY,
    }

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.splitstore/config.json)
        """
        self.config_path = Path(config_path)
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        A file that cannot be parsed is backed up to config.json.bak and
        defaults are used instead.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.splitstore' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.config_path.exists():
            config = self.DEFAULT_CONFIG.copy()
            self._write(config)
            return config

        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable config {self.config_path}: {e}; using defaults")
            backup_path = self.config_path.with_suffix('.json.bak')
            try:
                shutil.copy(self.config_path, backup_path)
            except OSError as copy_error:
                logger.warning(f"Could not back up config to {backup_path}: {copy_error}")
            return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        if isinstance(data, dict):
            config.update(data)
        return config

    def _write(self, data: dict) -> None:
        try:
            with open(self.config_path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write config {self.config_path}: {e}")

    def save(self) -> None:
        """Save current configuration to file."""
        self._write(self.data)

    def get_base_url(self) -> str:
        """
        Get controller base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8000")
        """
        host = self.data.get('controller_host', 'localhost')
        port = self.data.get('controller_port', 8000)
        return f"http://{host}:{port}"

    def get_timeout(self) -> float:
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries', 'retry_backoff_base' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_base': self.data.get('retry_backoff_base', 0.5),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_chunk_size(self) -> int:
        size = int(self.data.get('chunk_size', CHUNK_SIZE_BYTES))
        if size <= 0:
            raise ValueError(f"chunk_size must be positive, got {size}")
        return size

    def get_concurrency(self) -> int:
        return max(1, int(self.data.get('concurrency', DEFAULT_UPLOAD_CONCURRENCY)))
