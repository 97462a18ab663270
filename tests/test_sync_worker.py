"""
SyncWorker chunked FIFO drain.
"""

import asyncio

import pytest

from netlogger.common.exceptions import StoreError
from netlogger.services.sync.worker import JobResult, SyncWorker

from .helpers import FakeSink, make_record


def fill(store, count):
    for i in range(count):
        store.append(make_record(i))


class UnreadableStore:
    def oldest(self, k):
        raise StoreError("database is locked", operation="select")


class ResettingSink:
    async def commit_batch(self, documents):
        raise OSError("connection reset")


class DeleteOnceFailingStore:
    """Delegates to a real store; the first delete_by_ids fails"""

    def __init__(self, store):
        self.store = store
        self.delete_failures = 0

    def oldest(self, k):
        return self.store.oldest(k)

    def delete_by_ids(self, ids):
        if self.delete_failures == 0:
            self.delete_failures += 1
            raise StoreError("disk I/O error", operation="delete")
        return self.store.delete_by_ids(ids)


async def test_empty_store_is_success(store, sink):
    worker = SyncWorker(store, sink)
    assert await worker.run() == JobResult.SUCCESS
    assert sink.calls == 0


async def test_drains_in_fixed_size_chunks(store, sink):
    fill(store, 250)
    worker = SyncWorker(store, sink)

    assert await worker.run() == JobResult.SUCCESS

    assert [len(batch) for batch in sink.batches] == [100, 100, 50]
    assert store.count() == 0
    # FIFO across and within chunks
    assert [doc["rsrp"] for doc in sink.documents] == [f"-{i} dBm" for i in range(250)]
    assert all("id" not in doc for doc in sink.documents)

    stats = worker.get_stats()
    assert stats["records_synced"] == 250
    assert stats["chunks_uploaded"] == 3
    assert stats["last_result"] == "success"


async def test_failed_chunk_stays_local_and_is_retried_first(store):
    fill(store, 250)
    sink = FakeSink(fail_on={2})
    worker = SyncWorker(store, sink)

    assert await worker.run() == JobResult.RETRY
    assert store.count() == 150
    assert store.oldest(1)[0].rsrp == "-100 dBm"

    assert await worker.run() == JobResult.SUCCESS
    assert store.count() == 0
    assert [doc["rsrp"] for doc in sink.documents] == [f"-{i} dBm" for i in range(250)]
    assert worker.get_stats()["failures"] == 1


async def test_records_appended_during_drain_are_not_deleted(store):
    fill(store, 2)
    sink = FakeSink(fail_on={2})
    sink.on_commit = lambda documents: store.append(make_record(500)) if sink.calls == 1 else None
    worker = SyncWorker(store, sink, chunk_size=2)

    assert await worker.run() == JobResult.RETRY
    [remaining] = store.oldest(10)
    assert remaining.rsrp == "-500 dBm"


async def test_store_error_is_retry(sink):
    worker = SyncWorker(UnreadableStore(), sink)
    assert await worker.run() == JobResult.RETRY
    assert sink.calls == 0


async def test_unexpected_upload_error_is_retry(store):
    fill(store, 3)
    worker = SyncWorker(store, ResettingSink())

    assert await worker.run() == JobResult.RETRY
    assert store.count() == 3

    stats = worker.get_stats()
    assert stats["failures"] == 1
    assert stats["last_result"] == "retry"
    assert stats["running"] is False


async def test_failed_local_delete_resends_chunk(store, sink):
    fill(store, 3)
    worker = SyncWorker(DeleteOnceFailingStore(store), sink)

    assert await worker.run() == JobResult.RETRY
    assert store.count() == 3

    assert await worker.run() == JobResult.SUCCESS
    assert store.count() == 0
    # At-least-once: the committed chunk reaches the remote a second time
    assert len(sink.batches) == 2
    assert sink.batches[0] == sink.batches[1]
    assert len(sink.documents) == 6


async def test_concurrent_runs_are_serialized(store):
    fill(store, 30)
    sink = FakeSink(delay_s=0.01)
    worker = SyncWorker(store, sink, chunk_size=10)

    results = await asyncio.gather(worker.run(), worker())

    assert results == [JobResult.SUCCESS, JobResult.SUCCESS]
    assert sink.max_in_flight == 1
    assert len(sink.documents) == 30
    assert store.count() == 0


def test_rejects_non_positive_chunk_size(store, sink):
    with pytest.raises(ValueError):
        SyncWorker(store, sink, chunk_size=0)
