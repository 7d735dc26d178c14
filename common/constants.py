"""Project-wide constants (chunk size, node defaults, ports, timeouts)."""

CHUNK_SIZE_BYTES: int = 1 * 1024 * 1024  # 1 MiB fixed client chunk size

DEFAULT_NODE_COUNT: int = 3

DEFAULT_UPLOAD_CONCURRENCY: int = 3

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024

NODESTORE_PORT: int = 50051
NODESTORE_SERVICE_NAME: str = "splitstore.NodeStoreService"
NODESTORE_TIMEOUT_SECONDS: float = 30.0

GRPC_KEEPALIVE_TIME_MS: int = 30_000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 10_000
GRPC_MAX_MESSAGE_BYTES: int = 8 * 1024 * 1024

NODE_DIR_PREFIX: str = "node"
CHUNK_FILE_PREFIX: str = "chunk_"
PARTIAL_ARTIFACT_SUFFIX: str = ".part"
