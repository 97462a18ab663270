"""
SupabaseSink against an httpx mock transport.
"""

import json

import httpx
import pytest

from netlogger.common.exceptions import SyncError
from netlogger.services.sync.remote import SupabaseSink

DOCUMENTS = [{"timestamp": "t1", "rsrp": "-95 dBm"}, {"timestamp": "t2", "rsrp": "-96 dBm"}]


def make_sink(handler) -> SupabaseSink:
    return SupabaseSink(
        "https://example.supabase.co/",
        "service-key",
        table="network_logs",
        transport=httpx.MockTransport(handler),
    )


async def test_commit_batch_posts_whole_chunk():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201)

    sink = make_sink(handler)
    await sink.commit_batch(DOCUMENTS)
    await sink.close()

    [request] = requests
    assert request.method == "POST"
    assert request.url == "https://example.supabase.co/rest/v1/network_logs"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"
    assert request.headers["Prefer"] == "return=minimal"
    assert json.loads(request.content) == DOCUMENTS
    assert sink.get_stats()["documents_committed"] == 2


async def test_empty_batch_sends_nothing():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(201)

    sink = make_sink(handler)
    await sink.commit_batch([])
    assert requests == []


async def test_http_error_raises_sync_error():
    sink = make_sink(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(SyncError) as exc_info:
        await sink.commit_batch(DOCUMENTS)
    assert exc_info.value.status_code == 500
    assert sink.get_stats()["batches_committed"] == 0
    await sink.close()


async def test_timeout_raises_sync_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    sink = make_sink(handler)
    with pytest.raises(SyncError) as exc_info:
        await sink.commit_batch(DOCUMENTS)
    assert "Timeout" in exc_info.value.message
    await sink.close()


async def test_transport_error_raises_sync_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    sink = make_sink(handler)
    with pytest.raises(SyncError) as exc_info:
        await sink.commit_batch(DOCUMENTS)
    assert exc_info.value.status_code is None
    await sink.close()
