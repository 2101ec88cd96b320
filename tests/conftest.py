"""
Shared fixtures: an app wired to a mocked upstream instead of the real providers.
"""
import json
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from keyproxy.config import Settings
from keyproxy.main import create_app
from keyproxy.providers.router import ProviderRouter

OPENAI_KEY = "sk-test-openai-0123456789"
CLAUDE_KEY = "sk-ant-REDACTED"


async def byte_chunks(chunks: Iterable[bytes], error: Optional[Exception] = None) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def parse_frames(body: str) -> List[Any]:
    """Split an SSE body into decoded payloads; the end marker stays a string."""
    frames = []
    for block in body.split("\n\n"):
        if not block:
            continue
        assert block.startswith("data: ")
        data = block[len("data: "):]
        frames.append(data if data == "[DONE]" else json.loads(data))
    return frames


class MockUpstream:
    """Records requests and answers them with a per-test handler."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(404)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        static_dir=str(tmp_path / "no-public"),
        log_level="DEBUG",
        openai_base_url="https://api.openai.com/v1",
        anthropic_base_url="https://api.anthropic.com/v1",
        anthropic_version="2023-06-01",
        anthropic_probe_model="claude-3-haiku-20240307",
        max_tokens=4000,
    )


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
def providers(settings, upstream) -> ProviderRouter:
    return ProviderRouter(settings, transport=upstream.transport)


@pytest.fixture
def client(settings, providers) -> TestClient:
    return TestClient(create_app(settings, providers=providers))
