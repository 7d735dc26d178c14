"""gRPC server exposing a LocalNodeStorage to remote controllers."""

import errno
import grpc
from grpc import aio
from typing import AsyncIterator

from common.constants import GRPC_MAX_MESSAGE_BYTES, NODESTORE_SERVICE_NAME
from common.logging_config import get_logger
from common.protocol import (
    DeleteChunkResponse,
    GetChunkResponse,
    LocatorRequest,
    PingResponse,
    PutChunkRequest,
    PutChunkResponse,
)
from nodestore.base import ChunkUnavailableError, InvalidLocatorError
from nodestore.checksum import IncrementalChecksumCalculator
from nodestore.local_storage import LocalNodeStorage

logger = get_logger(__name__)


class NodeStoreServicer:
    """
    gRPC service implementation for node store operations.
    """

    def __init__(self, storage: LocalNodeStorage):
        """
        Initialize servicer with the partitions it serves.

        Args:
            storage: LocalNodeStorage holding the chunk bytes
        """
        self.storage = storage

    async def PutChunk(
        self,
        request_iterator: AsyncIterator[bytes],
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle PutChunk RPC (client streaming).
        Receives a header followed by data pieces, validates size and checksum, writes to disk.

        Args:
            request_iterator: Stream of PutChunkRequest messages (serialized)
            context: gRPC context

        Returns:
            Serialized PutChunkResponse
        """
        header = None
        data_buffer = bytearray()
        checksum_calculator = IncrementalChecksumCalculator()

        try:
            async for request_bytes in request_iterator:
                request = PutChunkRequest.from_json(request_bytes)

                if request.header:
                    header = request.header
                    logger.info(
                        f"Receiving chunk {header.chunk_index} of transfer {header.transfer_id} "
                        f"for node {header.node_id}, size={header.total_size}"
                    )

                if request.data:
                    data_buffer.extend(request.data)
                    checksum_calculator.update(request.data)

            if header is None:
                error_msg = "No header received in PutChunk stream"
                logger.error(error_msg)
                return PutChunkResponse(success=False, error_message=error_msg).to_json()

            computed_checksum = checksum_calculator.finalize()
            if computed_checksum != header.checksum:
                error_msg = (
                    f"Checksum mismatch for chunk {header.chunk_index} of {header.transfer_id}: "
                    f"expected {header.checksum}, got {computed_checksum}"
                )
                logger.error(error_msg)
                return PutChunkResponse(success=False, error_message=error_msg).to_json()

            if len(data_buffer) != header.total_size:
                error_msg = (
                    f"Size mismatch for chunk {header.chunk_index} of {header.transfer_id}: "
                    f"expected {header.total_size}, got {len(data_buffer)}"
                )
                logger.error(error_msg)
                return PutChunkResponse(success=False, error_message=error_msg).to_json()

            try:
                locator = await self.storage.put(
                    header.node_id,
                    header.transfer_id,
                    header.chunk_index,
                    bytes(data_buffer)
                )
            except InvalidLocatorError as e:
                logger.error(f"Rejected chunk: {e}")
                return PutChunkResponse(success=False, error_message=str(e)).to_json()
            except OSError as os_error:
                if os_error.errno == errno.ENOSPC:
                    error_msg = f"Disk full: cannot write chunk {header.chunk_index} of {header.transfer_id}"
                    logger.error(error_msg)
                    return PutChunkResponse(success=False, error_message=error_msg).to_json()
                raise

            logger.info(f"Stored chunk at {locator}")
            return PutChunkResponse(success=True, locator=locator).to_json()

        except Exception as e:
            error_msg = f"Error writing chunk: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return PutChunkResponse(success=False, error_message=error_msg).to_json()

    async def GetChunk(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> AsyncIterator[bytes]:
        """
        Handle GetChunk RPC (server streaming).

        Args:
            request_bytes: Serialized LocatorRequest
            context: gRPC context

        Yields:
            Serialized GetChunkResponse pieces
        """
        request = LocatorRequest.from_json(request_bytes)
        locator = request.locator

        try:
            async for piece in self.storage.get(locator):
                yield GetChunkResponse(data=piece).to_json()
            logger.info(f"Streamed chunk {locator}")
        except InvalidLocatorError as e:
            logger.error(f"Invalid locator {locator}: {e}")
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
        except ChunkUnavailableError as e:
            logger.error(f"Chunk unavailable {locator}: {e}")
            await context.abort(grpc.StatusCode.NOT_FOUND, f"Chunk not found: {locator}")

    async def DeleteChunk(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle DeleteChunk RPC (unary).

        Args:
            request_bytes: Serialized LocatorRequest
            context: gRPC context

        Returns:
            Serialized DeleteChunkResponse
        """
        try:
            request = LocatorRequest.from_json(request_bytes)
            existed = await self.storage.delete(request.locator)

            if existed:
                logger.info(f"Deleted chunk {request.locator}")
            else:
                logger.warning(f"Chunk {request.locator} not found for deletion")

            return DeleteChunkResponse(success=True, existed=existed).to_json()

        except Exception as e:
            error_msg = f"Error deleting chunk: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return DeleteChunkResponse(success=False, error_message=error_msg).to_json()

    async def Ping(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle Ping RPC (unary). Simple health check endpoint.
        """
        available = await self.storage.ping()
        return PingResponse(available=available, node_count=self.storage.node_count).to_json()


def _identity(x):
    return x


def create_server(storage: LocalNodeStorage) -> aio.Server:
    """
    Create and configure gRPC server.

    Args:
        storage: LocalNodeStorage serving the partitions

    Returns:
        Configured gRPC server (ports not yet bound)
    """
    server = aio.server(options=[
        ('grpc.max_receive_message_length', GRPC_MAX_MESSAGE_BYTES),
        ('grpc.max_send_message_length', GRPC_MAX_MESSAGE_BYTES),
    ])
    servicer = NodeStoreServicer(storage)

    server.add_generic_rpc_handlers((
        grpc.method_handlers_generic_handler(
            NODESTORE_SERVICE_NAME,
            {
                'PutChunk': grpc.stream_unary_rpc_method_handler(
                    servicer.PutChunk,
                    request_deserializer=_identity,
                    response_serializer=_identity,
                ),
                'GetChunk': grpc.unary_stream_rpc_method_handler(
                    servicer.GetChunk,
                    request_deserializer=_identity,
                    response_serializer=_identity,
                ),
                'DeleteChunk': grpc.unary_unary_rpc_method_handler(
                    servicer.DeleteChunk,
                    request_deserializer=_identity,
                    response_serializer=_identity,
                ),
                'Ping': grpc.unary_unary_rpc_method_handler(
                    servicer.Ping,
                    request_deserializer=_identity,
                    response_serializer=_identity,
                ),
            }
        ),
    ))

    return server
