"""
Sync Worker

Drains the local store to the remote sink in fixed-size chunks.

One run:
1. fetch the oldest CHUNK_SIZE records
2. empty -> done, SUCCESS
3. commit the chunk remotely (all-or-nothing)
4. on success delete exactly those ids locally, go to 1
5. on failure stop and return RETRY; the chunk is still local and is sent
   again from scratch on the next run

Chunks committed earlier in a failed run stay committed and deleted.
Delivery is at-least-once: a crash between step 3 and step 4 re-sends the
chunk on the next run.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum

from netlogger.common.config import CHUNK_SIZE
from netlogger.common.exceptions import StoreError, SyncError
from netlogger.common.logging_setup import get_service_logger
from netlogger.services.storage.local_db import LocalStore

from .remote import RemoteSink

logger = get_service_logger("sync.worker")


class JobResult(str, Enum):
    """Outcome reported to the job runner"""
    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


class SyncWorker:
    """
    Chunked, FIFO drain of the local store.

    Runs are serialized: a periodic run and an ad-hoc run never drain at
    the same time.
    """

    def __init__(
        self,
        store: LocalStore,
        sink: RemoteSink,
        chunk_size: int = CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.store = store
        self.sink = sink
        self.chunk_size = chunk_size
        self._lock = asyncio.Lock()

        self._run_count = 0
        self._records_synced = 0
        self._chunks_uploaded = 0
        self._failure_count = 0
        self._last_result: JobResult | None = None
        self._last_success: datetime | None = None

    async def _run_db(self, func, *args):
        """Run a blocking store method in a thread to avoid blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def __call__(self) -> JobResult:
        return await self.run()

    async def run(self) -> JobResult:
        async with self._lock:
            self._run_count += 1
            result = JobResult.RETRY
            try:
                result = await self._drain()
                return result
            finally:
                self._last_result = result
                if result == JobResult.SUCCESS:
                    self._last_success = datetime.now(timezone.utc)
                else:
                    self._failure_count += 1

    async def _drain(self) -> JobResult:
        synced = 0
        while True:
            try:
                chunk = await self._run_db(self.store.oldest, self.chunk_size)
            except StoreError as e:
                logger.error(f"Sync aborted, could not read local store: {e}")
                return JobResult.RETRY

            if not chunk:
                if synced:
                    logger.info(f"Sync complete: {synced} records uploaded")
                return JobResult.SUCCESS

            try:
                await self.sink.commit_batch([record.to_document() for record in chunk])
            except SyncError as e:
                logger.warning(
                    f"Chunk upload failed ({e}), {len(chunk)} records kept for retry; "
                    f"{synced} records uploaded this run"
                )
                return JobResult.RETRY
            except Exception as e:
                logger.error(
                    f"Chunk upload error: {e.__class__.__name__}: {e}, "
                    f"{len(chunk)} records kept for retry"
                )
                return JobResult.RETRY

            ids = [record.id for record in chunk]
            try:
                await self._run_db(self.store.delete_by_ids, ids)
            except StoreError as e:
                # Remote already has the chunk; it will be sent again next run
                logger.error(f"Uploaded chunk could not be deleted locally: {e}")
                return JobResult.RETRY

            synced += len(chunk)
            self._records_synced += len(chunk)
            self._chunks_uploaded += 1
            logger.debug(f"Uploaded chunk of {len(chunk)} records (ids {ids[0]}..{ids[-1]})")

    def get_stats(self) -> dict:
        return {
            "chunk_size": self.chunk_size,
            "runs": self._run_count,
            "records_synced": self._records_synced,
            "chunks_uploaded": self._chunks_uploaded,
            "failures": self._failure_count,
            "last_result": self._last_result.value if self._last_result else None,
            "last_success": self._last_success.isoformat() if self._last_success else None,
            "running": self._lock.locked(),
        }
