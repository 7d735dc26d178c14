"""Per-transfer asyncio locks for metadata read-modify-write."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class TransferLockManager:
    """
    Hands out one asyncio.Lock per transfer id.

    Entries are reference counted and dropped once no coroutine holds or
    waits on them, so the registry only grows with in-flight transfers.
    Locks for different ids are independent.
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, transfer_id: str) -> AsyncIterator[None]:
        """
        Hold the lock for a transfer id for the duration of the block.

        Args:
            transfer_id: Id whose metadata is being mutated
        """
        entry = self._entries.get(transfer_id)
        if entry is None:
            entry = _Entry()
            self._entries[transfer_id] = entry
        entry.holders += 1

        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._entries.get(transfer_id) is entry:
                del self._entries[transfer_id]

    def is_locked(self, transfer_id: str) -> bool:
        """Check whether some coroutine currently holds the lock for an id."""
        entry = self._entries.get(transfer_id)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
