import json
from typing import List

import httpx
import pytest
from fastapi.testclient import TestClient

from task_relay.main import create_app
from task_relay.settings import Settings

WEBHOOK_URL = "http://n8n.test/webhook/tasks"


class FakeN8n:
    """Stands in for the n8n webhook; records every JSON body it receives."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    @property
    def payloads(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def settings(upload_dir) -> Settings:
    return Settings(_env_file=None, n8n_webhook_url=WEBHOOK_URL, upload_dir=upload_dir)


@pytest.fixture
def n8n() -> FakeN8n:
    return FakeN8n()


@pytest.fixture
def client(settings, n8n) -> TestClient:
    return TestClient(create_app(settings, transport=n8n.transport))
