"""Entry point for a standalone node store server.
Prepares the partition directories and serves them over gRPC.
"""

import asyncio
import signal
import sys

from common.logging_config import setup_logging
from nodestore.config import NODESTORE_LISTEN_ADDR, NODESTORE_NODE_COUNT, NODESTORE_ROOT
from nodestore.grpc_server import create_server
from nodestore.local_storage import LocalNodeStorage

logger = setup_logging('nodestore')


async def serve(storage: LocalNodeStorage, listen_addr: str) -> None:
    """
    Start and run gRPC server until terminated.

    Args:
        storage: Initialized LocalNodeStorage
        listen_addr: Address to bind (e.g. '[::]:50051')
    """
    server = create_server(storage)
    server.add_insecure_port(listen_addr)

    logger.info(f"Starting node store on {listen_addr} (root={storage.root}, N={storage.node_count})")
    await server.start()

    async def shutdown(sig=None):
        if sig:
            logger.info(f"Received signal {sig}, shutting down...")
        else:
            logger.info("Shutting down...")
        await server.stop(5)
        logger.info("Node store stopped")

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    await server.wait_for_termination()


def main() -> None:
    """Bootstrap node store service."""
    logger.info("Initializing node store...")

    storage = LocalNodeStorage(NODESTORE_ROOT, NODESTORE_NODE_COUNT)
    storage.ensure_nodes()

    try:
        asyncio.run(serve(storage, NODESTORE_LISTEN_ADDR))
    except KeyboardInterrupt:
        logger.info("Node store shutdown complete")


if __name__ == "__main__":
    main()
