"""
Remote Sink

Commits a chunk of LogRecord documents to the remote store as one atomic
write. The Supabase implementation posts the whole chunk to PostgREST in a
single request, which PostgREST executes as a single INSERT: either every
document in the chunk is stored or none is.
"""

from typing import Any, Protocol

import httpx

from netlogger.common.exceptions import SyncError
from netlogger.common.logging_setup import get_service_logger

logger = get_service_logger("sync.remote")


class RemoteSink(Protocol):
    async def commit_batch(self, documents: list[dict[str, Any]]) -> None:
        """
        Raises:
            SyncError: If the batch was not committed
        """
        ...


class SupabaseSink:
    """
    PostgREST bulk-insert sink.

    No per-record idempotency key is sent: a chunk re-uploaded after a crash
    between remote commit and local delete lands twice.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        table: str = "network_logs",
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.table = table
        self.timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self._batches_committed = 0
        self._documents_committed = 0

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.supabase_url,
                headers={
                    "apikey": self.supabase_key,
                    "Authorization": f"Bearer {self.supabase_key}",
                    "Content-Type": "application/json",
                    "Prefer": "return=minimal",  # Don't return inserted rows
                },
                timeout=self.timeout_s,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def commit_batch(self, documents: list[dict[str, Any]]) -> None:
        if not documents:
            return

        client = self._get_client()
        try:
            response = await client.post(f"/rest/v1/{self.table}", json=documents)
            response.raise_for_status()

        except httpx.HTTPStatusError as e:
            try:
                error_body = e.response.text
            except Exception:
                error_body = "Could not read response body"
            logger.error(
                f"Batch commit rejected: HTTP {e.response.status_code}, "
                f"{len(documents)} documents, response: {error_body}"
            )
            raise SyncError(
                f"HTTP {e.response.status_code}",
                operation="commit_batch",
                status_code=e.response.status_code,
            ) from e

        except httpx.TimeoutException as e:
            logger.warning(f"Batch commit timeout ({len(documents)} documents)")
            raise SyncError("Timeout", operation="commit_batch") from e

        except httpx.HTTPError as e:
            logger.warning(f"Batch commit error: {e.__class__.__name__}: {e}")
            raise SyncError(str(e) or e.__class__.__name__, operation="commit_batch") from e

        self._batches_committed += 1
        self._documents_committed += len(documents)
        logger.debug(f"Committed batch of {len(documents)} documents to {self.table}")

    def get_stats(self) -> dict:
        return {
            "table": self.table,
            "batches_committed": self._batches_committed,
            "documents_committed": self._documents_committed,
        }
