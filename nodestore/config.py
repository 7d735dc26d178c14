"""Configuration settings for a standalone node store server."""

import os
from pathlib import Path

from common.constants import DEFAULT_NODE_COUNT, NODESTORE_PORT


NODESTORE_ROOT = Path(os.environ.get("NODESTORE_ROOT", "/app/data/chunks"))

NODESTORE_NODE_COUNT = int(os.environ.get("NODESTORE_NODE_COUNT", str(DEFAULT_NODE_COUNT)))

NODESTORE_LISTEN_ADDR = os.environ.get("NODESTORE_LISTEN_ADDR", f"[::]:{NODESTORE_PORT}")
