"""gRPC client implementing NodeStorage against remote node store servers."""

import asyncio
import grpc
from typing import AsyncIterator, Dict

from common.constants import (
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
    GRPC_MAX_MESSAGE_BYTES,
    NODESTORE_SERVICE_NAME,
    NODESTORE_TIMEOUT_SECONDS,
    STREAM_PIECE_SIZE_BYTES,
)
from common.logging_config import get_logger
from common.protocol import (
    ChunkHeader,
    DeleteChunkResponse,
    GetChunkResponse,
    LocatorRequest,
    PingResponse,
    PutChunkRequest,
    PutChunkResponse,
)
from nodestore.base import (
    ChunkUnavailableError,
    InvalidLocatorError,
    NodeStorage,
    NodeStorageError,
    NodeUnavailableError,
)
from nodestore.checksum import compute_checksum

logger = get_logger(__name__)

TRANSIENT_CODES = (grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.DEADLINE_EXCEEDED)


def _identity(x):
    return x


class GrpcNodeStorage(NodeStorage):
    """
    NodeStorage that reaches each partition through a node store server.

    Locators are prefixed with the owning node id ('{node_id}:{remote_locator}')
    so get and delete know which server to call.
    """

    def __init__(
        self,
        addresses: Dict[int, str],
        timeout: float = NODESTORE_TIMEOUT_SECONDS,
        max_retries: int = 3
    ):
        """
        Initialize client with lazy connections.

        Args:
            addresses: Mapping node_id -> 'host:port' of the serving node store
            timeout: Per-call timeout in seconds
            max_retries: Attempts for put/delete on transient failures
        """
        if not addresses:
            raise ValueError("At least one node store address is required")
        self.addresses = dict(addresses)
        self.timeout = timeout
        self.max_retries = max_retries
        self._channels: Dict[str, grpc.aio.Channel] = {}

    def _channel_for(self, node_id: int) -> grpc.aio.Channel:
        address = self.addresses.get(node_id)
        if address is None:
            raise InvalidLocatorError(f"No node store address configured for node {node_id}")

        channel = self._channels.get(address)
        if channel is None:
            options = [
                ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
                ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
                ('grpc.keepalive_permit_without_calls', 1),
                ('grpc.max_receive_message_length', GRPC_MAX_MESSAGE_BYTES),
                ('grpc.max_send_message_length', GRPC_MAX_MESSAGE_BYTES),
            ]
            channel = grpc.aio.insecure_channel(address, options=options)
            self._channels[address] = channel
            logger.info(f"Established gRPC channel to {address}")
        return channel

    @staticmethod
    def _split_locator(locator: str) -> tuple:
        node_part, sep, remote_locator = locator.partition(':')
        if not sep or not node_part.isdigit() or not remote_locator:
            raise InvalidLocatorError(f"Malformed locator: {locator!r}")
        return int(node_part), remote_locator

    async def close(self) -> None:
        """Close all gRPC channels."""
        for channel in self._channels.values():
            await channel.close()
        self._channels.clear()

    async def _retry_with_backoff(self, operation, *args):
        """
        Retry operation with exponential backoff for transient failures.

        Raises:
            NodeUnavailableError: If every attempt failed with a transient status
        """
        for attempt in range(self.max_retries):
            try:
                return await operation(*args)
            except grpc.RpcError as e:
                if e.code() not in TRANSIENT_CODES:
                    raise NodeStorageError(f"Node store call failed: {e.details()}") from e
                if attempt < self.max_retries - 1:
                    delay = 2 ** attempt
                    logger.warning(
                        f"Transient failure, retrying in {delay}s (attempt {attempt + 1}/{self.max_retries}): {e.details()}"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise NodeUnavailableError(f"Node store unavailable: {e.details()}") from e

    async def put(self, node_id: int, transfer_id: str, index: int, data: bytes) -> str:
        remote_locator = await self._retry_with_backoff(self._put_internal, node_id, transfer_id, index, data)
        return f"{node_id}:{remote_locator}"

    async def _put_internal(self, node_id: int, transfer_id: str, index: int, data: bytes) -> str:
        channel = self._channel_for(node_id)

        async def request_generator():
            header = ChunkHeader(
                node_id=node_id,
                transfer_id=transfer_id,
                chunk_index=index,
                total_size=len(data),
                checksum=compute_checksum(data)
            )
            yield PutChunkRequest(header=header).to_json()

            for offset in range(0, len(data), STREAM_PIECE_SIZE_BYTES):
                yield PutChunkRequest(data=data[offset:offset + STREAM_PIECE_SIZE_BYTES]).to_json()

        multi_callable = channel.stream_unary(
            f'/{NODESTORE_SERVICE_NAME}/PutChunk',
            request_serializer=_identity,
            response_deserializer=_identity,
        )
        response_bytes = await multi_callable(request_generator(), timeout=self.timeout)
        response = PutChunkResponse.from_json(response_bytes)

        if not response.success:
            raise NodeStorageError(f"Put failed for chunk {index} of {transfer_id}: {response.error_message}")

        logger.debug(f"Stored chunk {index} of {transfer_id} on node {node_id} at {response.locator}")
        return response.locator

    async def get(self, locator: str) -> AsyncIterator[bytes]:
        """
        Stream chunk bytes from the owning node store.

        Streaming reads are single-attempt: the stream succeeds or fails as a whole.
        """
        node_id, remote_locator = self._split_locator(locator)
        channel = self._channel_for(node_id)

        multi_callable = channel.unary_stream(
            f'/{NODESTORE_SERVICE_NAME}/GetChunk',
            request_serializer=_identity,
            response_deserializer=_identity,
        )

        try:
            response_stream = multi_callable(
                LocatorRequest(locator=remote_locator).to_json(),
                timeout=self.timeout
            )
            async for response_bytes in response_stream:
                yield GetChunkResponse.from_json(response_bytes).data
        except grpc.RpcError as e:
            if e.code() in TRANSIENT_CODES:
                raise NodeUnavailableError(f"Node {node_id} unavailable: {e.details()}") from e
            raise ChunkUnavailableError(f"Cannot read chunk {locator}: {e.details()}") from e

    async def delete(self, locator: str) -> bool:
        node_id, remote_locator = self._split_locator(locator)
        return await self._retry_with_backoff(self._delete_internal, node_id, remote_locator)

    async def _delete_internal(self, node_id: int, remote_locator: str) -> bool:
        channel = self._channel_for(node_id)
        multi_callable = channel.unary_unary(
            f'/{NODESTORE_SERVICE_NAME}/DeleteChunk',
            request_serializer=_identity,
            response_deserializer=_identity,
        )
        response_bytes = await multi_callable(
            LocatorRequest(locator=remote_locator).to_json(),
            timeout=self.timeout
        )
        response = DeleteChunkResponse.from_json(response_bytes)
        if not response.success:
            raise NodeStorageError(f"Delete failed for {remote_locator}: {response.error_message}")
        return response.existed

    async def ping(self) -> bool:
        """
        Check that every configured node store answers.

        Returns:
            True if all node stores respond as available, False otherwise
        """
        for node_id in sorted(self.addresses):
            channel = self._channel_for(node_id)
            multi_callable = channel.unary_unary(
                f'/{NODESTORE_SERVICE_NAME}/Ping',
                request_serializer=_identity,
                response_deserializer=_identity,
            )
            try:
                response_bytes = await multi_callable(b'{}', timeout=5)
            except grpc.RpcError as e:
                logger.warning(f"Ping to node {node_id} failed: {e.details()}")
                return False
            if not PingResponse.from_json(response_bytes).available:
                return False
        return True
