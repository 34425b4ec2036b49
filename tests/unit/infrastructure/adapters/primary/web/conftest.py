"""Fixtures for the HTTP and WebSocket surface."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from toolgate.configuration.container import Container
from toolgate.infrastructure.adapters.primary.web.main import create_app


def delta_frame(text: str) -> str:
    return json.dumps({"choices": [{"delta": {"content": text}}]})


class FakeUpstream:
    """OpenAI-compatible backend served through httpx.MockTransport."""

    def __init__(self):
        self.models = ["test-model"]
        self.turns: list[str] = []
        self.completion = {"choices": [{"message": {"role": "assistant", "content": "Hi!"}}]}
        self.down = False
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("connection refused")
        if request.url.path == "/v1/models":
            return httpx.Response(200, json={"data": [{"id": model} for model in self.models]})

        body = json.loads(request.content)
        self.requests.append(body)
        if not body["stream"]:
            return httpx.Response(200, json=self.completion)

        text = self.turns.pop(0) if self.turns else "All done."
        content = f"data: {delta_frame(text)}\n\ndata: [DONE]\n\n"
        return httpx.Response(200, content=content.encode())


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def container(settings, upstream):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return Container(settings, http_client=http_client)


@pytest.fixture
def app(settings, container):
    return create_app(settings, container)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
