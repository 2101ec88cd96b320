from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import httpx

from keyproxy.core.credentials import KeyFormat
from keyproxy.providers.base import HTTPProvider
from keyproxy.schemas.chat import ChatResult

logger = logging.getLogger(__name__)

# Anthropic answers 401 for a bad key; 400 means the key got past auth
PROBE_OK_STATUSES = frozenset({400})


def extract_delta(event: Any) -> Optional[str]:
    # message_start, content_block_start, message_delta, ping... carry no text
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta")
    if not isinstance(delta, dict):
        return None
    text = delta.get("text") or ""
    return text if isinstance(text, str) else None


def normalize(data: Dict[str, Any]) -> ChatResult:
    return ChatResult(
        content=data["content"][0].get("text"),
        model=data.get("model"),
        usage=data.get("usage"),
    )


class AnthropicProvider(HTTPProvider):
    id = "claude"
    label = "Claude"
    key_format = KeyFormat(prefix="sk-ant-", label="Anthropic")
    chat_path = "/messages"

    @property
    def base_url(self) -> str:
        return self.settings.anthropic_base_url.rstrip("/")

    def headers(self, api_key: str) -> Dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": self.settings.anthropic_version,
            "content-type": "application/json",
        }

    def normalize(self, data: Dict[str, Any]) -> ChatResult:
        return normalize(data)

    def extract_delta(self, event: Any) -> Optional[str]:
        return extract_delta(event)

    async def validate_key(self, api_key: str) -> bool:
        payload = {
            "model": self.settings.anthropic_probe_model,
            "max_tokens": 10,
            "messages": [{"role": "user", "content": "test"}],
        }
        try:
            async with self.client() as client:
                resp = await client.post(self.chat_url, headers=self.headers(api_key), json=payload)
        except httpx.HTTPError as e:
            logger.warning("Anthropic key probe failed: %s", e)
            return False
        return resp.is_success or resp.status_code in PROBE_OK_STATUSES
