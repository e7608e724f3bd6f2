import json

import httpx
import pytest

from task_relay.errors import RelayFailed
from task_relay.models import TaskRecord
from task_relay.relay import RelayClient

URL = "http://n8n.test/webhook/tasks"


def _record():
    return TaskRecord(id="task_42", timestamp="2025-01-01T00:00:00.000Z", fields={"name": "Ana"})


def _client(handler, **kwargs):
    return RelayClient(URL, transport=httpx.MockTransport(handler), backoff_seconds=0, **kwargs)


@pytest.mark.anyio
async def test_send_posts_json_payload():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    receipt = await _client(handler).send(_record())

    assert receipt.task_id == "task_42"
    assert receipt.status_code == 200
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == URL
    assert json.loads(seen[0].content) == {
        "id": "task_42",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "name": "Ana",
        "filePath": None,
        "fileName": None,
        "status": "received",
    }


@pytest.mark.anyio
async def test_non_success_status_raises_with_code():
    with pytest.raises(RelayFailed) as exc:
        await _client(lambda request: httpx.Response(502)).send(_record())
    assert exc.value.status_code == 502
    assert exc.value.message == "n8n error: 502"


@pytest.mark.anyio
async def test_transport_error_raises_with_message():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RelayFailed) as exc:
        await _client(handler).send(_record())
    assert exc.value.status_code is None
    assert "connection refused" in exc.value.message


@pytest.mark.anyio
async def test_single_attempt_by_default():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(RelayFailed):
        await _client(handler).send(_record())
    assert len(calls) == 1


@pytest.mark.anyio
async def test_bounded_retry_when_configured():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503 if len(calls) < 3 else 200)

    receipt = await _client(handler, max_attempts=3).send(_record())
    assert receipt.status_code == 200
    assert len(calls) == 3


@pytest.mark.anyio
async def test_retry_gives_up_after_max_attempts():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(RelayFailed):
        await _client(handler, max_attempts=2).send(_record())
    assert len(calls) == 2


@pytest.mark.anyio
async def test_unset_destination_is_relay_failure():
    with pytest.raises(RelayFailed) as exc:
        await RelayClient(None).send(_record())
    assert "N8N_WEBHOOK_URL" in exc.value.message


@pytest.mark.anyio
async def test_invalid_destination_is_relay_failure():
    with pytest.raises(RelayFailed) as exc:
        await RelayClient("not-a-url").send(_record())
    assert exc.value.message
