from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import httpx

from keyproxy.core.credentials import KeyFormat
from keyproxy.providers.base import HTTPProvider
from keyproxy.schemas.chat import ChatResult

logger = logging.getLogger(__name__)


def extract_delta(event: Any) -> Optional[str]:
    """choices[0].delta.content of a chat.completion.chunk."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


def normalize(data: Dict[str, Any]) -> ChatResult:
    return ChatResult(
        content=data["choices"][0]["message"].get("content"),
        model=data.get("model"),
        usage=data.get("usage"),
    )


class OpenAIProvider(HTTPProvider):
    id = "openai"
    label = "OpenAI"
    key_format = KeyFormat(prefix="sk-", label="OpenAI")
    chat_path = "/chat/completions"

    @property
    def base_url(self) -> str:
        return self.settings.openai_base_url.rstrip("/")

    def headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def normalize(self, data: Dict[str, Any]) -> ChatResult:
        return normalize(data)

    def extract_delta(self, event: Any) -> Optional[str]:
        return extract_delta(event)

    async def validate_key(self, api_key: str) -> bool:
        # Listing models is free and only needs a working key
        try:
            async with self.client() as client:
                resp = await client.get(f"{self.base_url}/models", headers={"Authorization": f"Bearer {api_key}"})
        except httpx.HTTPError as e:
            logger.warning("OpenAI key probe failed: %s", e)
            return False
        return resp.is_success
