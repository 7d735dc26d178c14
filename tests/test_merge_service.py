"""Tests for the merge engine."""

import asyncio
import itertools
import os

import pytest

from common.constants import CHUNK_SIZE_BYTES
from controller.exceptions import (
    IncompleteTransferError,
    MergeError,
    TransferNotFoundError,
    ValidationError,
)
from nodestore.checksum import compute_checksum


def split(data: bytes, size: int):
    return [data[offset:offset + size] for offset in range(0, len(data), size)] or [b'']


async def ingest_all(service, chunks, order=None, transfer_id='t1', filename='out.bin', target=''):
    results = []
    for index in (order if order is not None else range(len(chunks))):
        results.append(await service.ingest_chunk(
            transfer_id=transfer_id,
            filename=filename,
            index=index,
            total_chunks=len(chunks),
            target_path=target,
            payload=chunks[index],
        ))
    return results


@pytest.mark.asyncio
@pytest.mark.parametrize('node_count', [2])
async def test_report_pdf_scenario(ingest_service, merge_service, repository, storage, settings):
    source = os.urandom(2_500_000)
    chunks = split(source, CHUNK_SIZE_BYTES)
    assert [len(c) for c in chunks] == [1_048_576, 1_048_576, 402_848]

    results = await ingest_all(ingest_service, chunks, order=[1, 0, 2], transfer_id='f1')

    assert [r.node_id for r in results] == [2, 1, 1]
    assert [r.complete for r in results] == [False, False, True]

    result = await merge_service.merge('f1', 'report.pdf', 'docs')

    assert result.artifact_path == 'docs/report.pdf'
    assert result.size == 2_500_000
    assert result.chunks == 3
    assert result.checksum == compute_checksum(source)
    assert result.undeleted_chunks == []
    assert (settings.artifact_root / 'docs' / 'report.pdf').read_bytes() == source
    assert repository.get('f1') is None
    assert storage.list_locators('f1') == []


GREEK = [b'alpha-', b'beta-', b'gamma-', b'delta']


@pytest.mark.asyncio
@pytest.mark.parametrize('order', list(itertools.permutations(range(4))))
async def test_any_ingest_order_merges_in_index_order(ingest_service, merge_service, settings, order):
    await ingest_all(ingest_service, GREEK, order=list(order))

    await merge_service.merge('t1', 'greek.txt', '')

    assert (settings.artifact_root / 'greek.txt').read_bytes() == b''.join(GREEK)


@pytest.mark.asyncio
@pytest.mark.parametrize('node_count', [1, 2, 3, 5])
async def test_concurrent_ingest_merges_in_index_order(ingest_service, merge_service, settings, node_count):
    chunks = [bytes([n]) * (n + 1) for n in range(16)]

    results = await asyncio.gather(*[
        ingest_service.ingest_chunk(
            transfer_id='t1',
            filename='out.bin',
            index=index,
            total_chunks=len(chunks),
            target_path='',
            payload=chunks[index],
        )
        for index in (5, 0, 15, 3, 9, 1, 12, 7, 2, 14, 4, 11, 6, 13, 8, 10)
    ])

    assert sum(r.complete for r in results) >= 1
    result = await merge_service.merge('t1')

    assert result.chunks == 16
    assert (settings.artifact_root / 'out.bin').read_bytes() == b''.join(chunks)


@pytest.mark.asyncio
async def test_merge_uses_recorded_name_and_path(ingest_service, merge_service, settings):
    await ingest_all(ingest_service, [b'a', b'b'], filename='stored.txt', target='keep/here')

    result = await merge_service.merge('t1')

    assert result.artifact_path == 'keep/here/stored.txt'
    assert (settings.artifact_root / 'keep' / 'here' / 'stored.txt').read_bytes() == b'ab'


@pytest.mark.asyncio
async def test_incomplete_transfer_is_refused(ingest_service, merge_service, repository, storage, settings):
    await ingest_all(ingest_service, [b'a', b'b', b'c'], order=[0, 2])

    with pytest.raises(IncompleteTransferError) as exc_info:
        await merge_service.merge('t1', 'out.bin', 'docs/reports')

    assert exc_info.value.expected == 3
    assert exc_info.value.received == 2
    assert exc_info.value.missing == [1]
    assert repository.get('t1') is not None
    assert len(storage.list_locators('t1')) == 2
    assert list(settings.artifact_root.rglob('*')) == []


@pytest.mark.asyncio
async def test_duplicate_index_does_not_fake_completeness(ingest_service, merge_service):
    chunks = [b'a', b'b', b'c']
    await ingest_all(ingest_service, chunks, order=[0, 0, 1])

    with pytest.raises(IncompleteTransferError) as exc_info:
        await merge_service.merge('t1', 'out.bin', '')

    assert exc_info.value.missing == [2]


@pytest.mark.asyncio
async def test_resent_chunk_content_wins(ingest_service, merge_service, settings):
    await ingest_all(ingest_service, [b'stale', b'!'])
    await ingest_all(ingest_service, [b'fresh', b'!'], order=[0])

    await merge_service.merge('t1', 'out.bin', '')

    assert (settings.artifact_root / 'out.bin').read_bytes() == b'fresh!'


@pytest.mark.asyncio
async def test_unreadable_chunk_keeps_sources(ingest_service, merge_service, repository, storage, settings):
    await ingest_all(ingest_service, [b'one', b'two', b'three'], target='docs')
    transfer = repository.get('t1')
    storage.resolve(transfer.chunks[1].locator).unlink()

    with pytest.raises(MergeError) as exc_info:
        await merge_service.merge('t1', 'out.bin', 'docs')

    assert exc_info.value.index == 1
    assert repository.get('t1') is not None
    assert storage.list_locators('t1') == [transfer.chunks[0].locator, transfer.chunks[2].locator]
    docs = settings.artifact_root / 'docs'
    assert not (docs / 'out.bin').exists()
    assert list(docs.iterdir()) == []


@pytest.mark.asyncio
async def test_corrupted_chunk_is_detected(ingest_service, merge_service, repository, storage):
    await ingest_all(ingest_service, [b'one', b'two'])
    storage.resolve(repository.get('t1').chunks[0].locator).write_bytes(b'ONE')

    with pytest.raises(MergeError) as exc_info:
        await merge_service.merge('t1', 'out.bin', '')

    assert exc_info.value.index == 0
    assert repository.get('t1') is not None


@pytest.mark.asyncio
async def test_merge_can_be_retried_after_failure(ingest_service, merge_service, repository, storage, settings):
    await ingest_all(ingest_service, [b'one', b'two'])
    storage.resolve(repository.get('t1').chunks[1].locator).unlink()

    with pytest.raises(MergeError):
        await merge_service.merge('t1', 'out.bin', '')

    await ingest_all(ingest_service, [b'one', b'two'], order=[1])
    result = await merge_service.merge('t1', 'out.bin', '')

    assert result.size == 6
    assert (settings.artifact_root / 'out.bin').read_bytes() == b'onetwo'


@pytest.mark.asyncio
async def test_second_merge_reports_not_found(ingest_service, merge_service):
    await ingest_all(ingest_service, [b'x'])
    await merge_service.merge('t1', 'out.bin', '')

    with pytest.raises(TransferNotFoundError):
        await merge_service.merge('t1', 'out.bin', '')


@pytest.mark.asyncio
async def test_unknown_transfer(merge_service):
    with pytest.raises(TransferNotFoundError):
        await merge_service.merge('never-seen', 'out.bin', '')


@pytest.mark.asyncio
async def test_empty_file(ingest_service, merge_service, settings):
    await ingest_all(ingest_service, [b''])

    result = await merge_service.merge('t1', 'empty.txt', '')

    assert result.size == 0
    assert (settings.artifact_root / 'empty.txt').read_bytes() == b''


@pytest.mark.asyncio
async def test_existing_artifact_is_replaced(ingest_service, merge_service, settings):
    settings.artifact_root.mkdir(parents=True, exist_ok=True)
    (settings.artifact_root / 'out.bin').write_bytes(b'previous contents')
    await ingest_all(ingest_service, [b'new'])

    await merge_service.merge('t1', 'out.bin', '')

    assert (settings.artifact_root / 'out.bin').read_bytes() == b'new'


@pytest.mark.asyncio
async def test_escaping_target_path_rejected(ingest_service, merge_service, repository):
    await ingest_all(ingest_service, [b'x'])

    with pytest.raises(ValidationError):
        await merge_service.merge('t1', 'out.bin', '../../etc')

    assert repository.get('t1') is not None


@pytest.mark.asyncio
async def test_undeletable_chunk_is_reported(ingest_service, merge_service, repository, monkeypatch):
    await ingest_all(ingest_service, [b'a', b'b'])
    stuck = repository.get('t1').chunks[1].locator
    original_delete = merge_service.storage.delete

    async def flaky_delete(locator):
        if locator == stuck:
            raise OSError("busy")
        return await original_delete(locator)

    monkeypatch.setattr(merge_service.storage, 'delete', flaky_delete)

    result = await merge_service.merge('t1', 'out.bin', '')

    assert result.undeleted_chunks == [stuck]
    assert repository.get('t1') is None
