from typing import Optional

from fastapi import APIRouter, Depends
import logging
from fastapi.responses import StreamingResponse

from keyproxy.api.deps import get_credential_store, get_provider_router
from keyproxy.core.credentials import CredentialStore
from keyproxy.core.errors import ChatRequestError, ProxyError
from keyproxy.core.relay import relay_stream
from keyproxy.providers.base import ChatProvider, UpstreamStream
from keyproxy.providers.router import ProviderRouter
from keyproxy.schemas.chat import ChatRequest

router = APIRouter()
logger = logging.getLogger(__name__)


async def _sse(upstream: UpstreamStream, provider: ChatProvider):
    try:
        async for frame in relay_stream(upstream.aiter_bytes(), provider.extract_delta):
            yield frame
    finally:
        await upstream.aclose()


@router.post("/chat")
async def chat(
    request: Optional[ChatRequest] = None,
    store: CredentialStore = Depends(get_credential_store),
    providers: ProviderRouter = Depends(get_provider_router),
):
    """Forward a chat request using the stored key for ``request.provider``."""
    request = request or ChatRequest()
    # The key check comes first, so unknown providers without a key get 401
    api_key = store.lookup(request.provider)
    provider = providers.get_provider(request.provider)
    logger.info(
        "/chat start provider=%s model=%s messages=%d stream=%s",
        request.provider, request.model, len(request.messages), request.stream,
    )

    try:
        if not request.stream:
            result = await provider.chat(api_key, request)
            return result.model_dump()
        upstream = await provider.open_stream(api_key, request)
    except ProxyError as e:
        logger.error("Chat error for %s: %s", request.provider, e)
        raise
    except Exception as e:
        logger.exception("Chat error for %s: %s", request.provider, e)
        raise ChatRequestError(str(e)) from e

    return StreamingResponse(
        _sse(upstream, provider),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
