from __future__ import annotations
import abc
import logging
from typing import Any, AsyncIterator, Dict, Optional, Protocol

import httpx

from keyproxy.config import Settings, get_settings
from keyproxy.core.credentials import KeyFormat
from keyproxy.core.errors import UpstreamError
from keyproxy.schemas.chat import ChatRequest, ChatResult

logger = logging.getLogger(__name__)


class ChatProvider(Protocol):
    id: str
    key_format: KeyFormat

    async def validate_key(self, api_key: str) -> bool:
        ...

    async def chat(self, api_key: str, request: ChatRequest) -> ChatResult:
        ...

    async def open_stream(self, api_key: str, request: ChatRequest) -> "UpstreamStream":
        ...

    def extract_delta(self, event: Any) -> Optional[str]:
        ...


class UpstreamStream:
    """An open streaming response together with the client that owns it."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self.client = client
        self.response = response

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        return self.response.aiter_bytes()

    async def aclose(self) -> None:
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class HTTPProvider(abc.ABC):
    """Request plumbing shared by the OpenAI and Anthropic providers.

    Subclasses supply the endpoint, headers, how to read a completed
    response (``normalize``) and how to read one streamed event
    (``extract_delta``).
    """

    id = ""
    label = ""
    key_format: KeyFormat
    chat_path = ""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    @property
    @abc.abstractmethod
    def base_url(self) -> str:
        ...

    @abc.abstractmethod
    def headers(self, api_key: str) -> Dict[str, str]:
        ...

    @abc.abstractmethod
    def normalize(self, data: Dict[str, Any]) -> ChatResult:
        ...

    @abc.abstractmethod
    def extract_delta(self, event: Any) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def validate_key(self, api_key: str) -> bool:
        ...

    def client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            connect=self.settings.connect_timeout,
            read=self.settings.read_timeout,
            write=30.0,
            pool=10.0,
        )
        return httpx.AsyncClient(timeout=timeout, trust_env=True, transport=self.transport)

    def payload(self, request: ChatRequest, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": request.payload_messages(),
            "max_tokens": self.settings.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    @property
    def chat_url(self) -> str:
        return self.base_url + self.chat_path

    async def chat(self, api_key: str, request: ChatRequest) -> ChatResult:
        async with self.client() as client:
            resp = await client.post(self.chat_url, headers=self.headers(api_key), json=self.payload(request))
            if not resp.is_success:
                logger.warning("%s chat failed status=%s", self.id, resp.status_code)
                raise UpstreamError(self.label, resp.status_code, resp.text)
            return self.normalize(resp.json())

    async def open_stream(self, api_key: str, request: ChatRequest) -> UpstreamStream:
        """Start a streaming request; a non-2xx reply is raised before any byte reaches the caller."""
        client = self.client()
        try:
            req = client.build_request(
                "POST",
                self.chat_url,
                headers=self.headers(api_key),
                json=self.payload(request, stream=True),
            )
            resp = await client.send(req, stream=True)
        except BaseException:
            await client.aclose()
            raise

        if not resp.is_success:
            try:
                body = (await resp.aread()).decode("utf-8", errors="replace")
            finally:
                await resp.aclose()
                await client.aclose()
            logger.warning("%s stream failed status=%s", self.id, resp.status_code)
            raise UpstreamError(self.label, resp.status_code, body)
        return UpstreamStream(client, resp)
