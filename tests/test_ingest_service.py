"""Tests for chunk ingest: validation, routing, persistence and completeness."""

import asyncio

import pytest

from controller.exceptions import NodeStorageUnavailableError, ValidationError
from nodestore.base import NodeStorageError
from nodestore.checksum import compute_checksum


async def ingest(service, index, payload=b'data', transfer_id='t1', total=3, filename='f.bin', target=''):
    return await service.ingest_chunk(
        transfer_id=transfer_id,
        filename=filename,
        index=index,
        total_chunks=total,
        target_path=target,
        payload=payload,
    )


@pytest.mark.asyncio
async def test_ingest_records_placement(ingest_service, repository, storage):
    result = await ingest(ingest_service, 1, b'chunk one')

    assert result.accepted
    assert not result.complete
    assert result.received == 1
    assert result.expected == 3
    assert result.node_id == 2

    transfer = repository.get('t1')
    placement = transfer.chunks[1]
    assert placement.node_id == 2
    assert placement.locator.startswith('node2/t1/chunk_1.')
    assert placement.size == 9
    assert placement.checksum == compute_checksum(b'chunk one')
    assert storage.resolve(placement.locator).read_bytes() == b'chunk one'


@pytest.mark.asyncio
async def test_complete_after_every_index(ingest_service):
    results = [await ingest(ingest_service, i) for i in (2, 0, 1)]

    assert [r.complete for r in results] == [False, False, True]
    assert results[-1].received == 3


@pytest.mark.asyncio
async def test_duplicate_index_is_not_counted_twice(ingest_service, repository):
    await ingest(ingest_service, 0, b'old')
    await ingest(ingest_service, 1)
    result = await ingest(ingest_service, 0, b'new')

    assert result.received == 2
    assert not result.complete
    assert repository.get('t1').missing_indices() == [2]


@pytest.mark.asyncio
async def test_resent_index_replaces_bytes(ingest_service, repository, storage):
    await ingest(ingest_service, 0, b'old bytes')
    old_locator = repository.get('t1').chunks[0].locator
    await ingest(ingest_service, 0, b'new')

    placement = repository.get('t1').chunks[0]
    assert placement.locator != old_locator
    assert storage.list_locators('t1') == [placement.locator]
    assert storage.resolve(placement.locator).read_bytes() == b'new'


@pytest.mark.asyncio
async def test_zero_length_chunk_accepted(ingest_service, repository):
    result = await ingest(ingest_service, 0, b'', total=1)

    assert result.complete
    assert repository.get('t1').chunks[0].size == 0


@pytest.mark.asyncio
@pytest.mark.parametrize('kwargs', [
    {'index': 3},
    {'index': -1},
    {'index': 0, 'total': 0},
    {'index': 0, 'transfer_id': ''},
    {'index': 0, 'transfer_id': '../escape'},
    {'index': 0, 'filename': ''},
    {'index': 0, 'filename': 'dir/name.bin'},
    {'index': 0, 'target': '../outside'},
])
async def test_invalid_requests_store_nothing(ingest_service, repository, storage, kwargs):
    with pytest.raises(ValidationError):
        await ingest(ingest_service, **kwargs)

    assert repository.list_transfers() == []
    assert storage.list_locators() == []


@pytest.mark.asyncio
async def test_total_chunks_must_not_change(ingest_service, repository, storage):
    await ingest(ingest_service, 0, total=3)

    with pytest.raises(ValidationError):
        await ingest(ingest_service, 1, total=5)

    assert storage.list_locators('t1') == [repository.get('t1').chunks[0].locator]


@pytest.mark.asyncio
async def test_target_path_is_normalized(ingest_service, repository):
    await ingest(ingest_service, 0, target='/docs/./reports/')

    assert repository.get('t1').target_path == 'docs/reports'


@pytest.mark.asyncio
async def test_storage_failure_reported_as_unavailable(ingest_service, repository, monkeypatch):
    async def failing_put(node_id, transfer_id, index, data):
        raise NodeStorageError("disk gone")

    monkeypatch.setattr(ingest_service.storage, 'put', failing_put)

    with pytest.raises(NodeStorageUnavailableError):
        await ingest(ingest_service, 0)

    assert repository.get('t1') is None


@pytest.mark.asyncio
async def test_concurrent_chunks_of_one_transfer(ingest_service, repository):
    total = 12
    results = await asyncio.gather(*[
        ingest(ingest_service, i, payload=bytes([i]) * 10, total=total) for i in range(total)
    ])

    transfer = repository.get('t1')
    assert transfer.is_complete()
    assert transfer.received == total
    assert sum(r.complete for r in results) >= 1
    assert sorted(r.node_id for r in results) == sorted((i % 3) + 1 for i in range(total))


@pytest.mark.asyncio
async def test_independent_transfers(ingest_service, repository):
    await asyncio.gather(
        ingest(ingest_service, 0, transfer_id='a', total=1),
        ingest(ingest_service, 0, transfer_id='b', total=2),
    )

    assert repository.get('a').is_complete()
    assert not repository.get('b').is_complete()


class SlowAckStorage:
    """Writes bytes immediately but acknowledges selected payloads late."""

    def __init__(self, inner, slow_payload, delay=0.05):
        self.inner = inner
        self.slow_payload = slow_payload
        self.delay = delay

    async def put(self, node_id, transfer_id, index, data):
        locator = await self.inner.put(node_id, transfer_id, index, data)
        if data == self.slow_payload:
            await asyncio.sleep(self.delay)
        return locator

    def get(self, locator):
        return self.inner.get(locator)

    async def delete(self, locator):
        return await self.inner.delete(locator)


async def read_placement(storage, placement):
    return b''.join([piece async for piece in storage.get(placement.locator)])


@pytest.mark.asyncio
@pytest.mark.parametrize('slow_payload', [b'first', b'second'])
async def test_concurrent_retries_of_one_index_stay_consistent(
    ingest_service, merge_service, repository, storage, settings, slow_payload
):
    slow = SlowAckStorage(storage, slow_payload)
    ingest_service.storage = slow
    merge_service.storage = slow

    results = await asyncio.gather(
        ingest(ingest_service, 0, b'first', total=1),
        ingest(ingest_service, 0, b'second', total=1),
    )

    assert all(r.complete for r in results)
    placement = repository.get('t1').chunks[0]
    stored = await read_placement(storage, placement)
    assert stored in (b'first', b'second')
    assert placement.size == len(stored)
    assert placement.checksum == compute_checksum(stored)
    assert storage.list_locators('t1') == [placement.locator]

    result = await merge_service.merge('t1', 'out.bin', '')

    assert (settings.artifact_root / 'out.bin').read_bytes() == stored
    assert result.checksum == compute_checksum(stored)


@pytest.mark.asyncio
async def test_many_concurrent_retries_leave_one_placement(ingest_service, repository, storage):
    payloads = [f"retry-{n}".encode() for n in range(8)]

    await asyncio.gather(*[ingest(ingest_service, 1, payload) for payload in payloads])

    transfer = repository.get('t1')
    assert transfer.received == 1
    placement = transfer.chunks[1]
    assert storage.list_locators('t1') == [placement.locator]
    assert placement.checksum == compute_checksum(storage.resolve(placement.locator).read_bytes())


@pytest.mark.asyncio
async def test_rejected_placement_discards_its_bytes(ingest_service, repository, storage, monkeypatch):
    await ingest(ingest_service, 0, total=3)

    # a racing request that slipped past the early total_chunks check
    monkeypatch.setattr(repository, 'get', lambda transfer_id: None)
    with pytest.raises(ValidationError):
        await ingest(ingest_service, 1, total=5)
    monkeypatch.undo()

    assert storage.list_locators('t1') == [repository.get('t1').chunks[0].locator]
