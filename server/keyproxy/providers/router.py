from __future__ import annotations
from typing import Dict, Optional

import httpx

from keyproxy.config import Settings
from keyproxy.core.credentials import KeyFormat
from keyproxy.core.errors import UnsupportedProviderError
from keyproxy.providers.anthropic import AnthropicProvider
from keyproxy.providers.base import ChatProvider
from keyproxy.providers.openai import OpenAIProvider


class ProviderRouter:
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        # Keyed by the provider id the browser sends
        self.providers: Dict[str, ChatProvider] = {
            "openai": OpenAIProvider(settings, transport),
            "claude": AnthropicProvider(settings, transport),
        }

    def key_formats(self) -> Dict[str, KeyFormat]:
        return {pid: provider.key_format for pid, provider in self.providers.items()}

    def get_provider(self, provider_id: Optional[str]) -> ChatProvider:
        provider = self.providers.get(provider_id or "")
        if provider is None:
            raise UnsupportedProviderError(provider_id)
        return provider

    async def validate(self, provider_id: Optional[str], api_key: Optional[str]) -> bool:
        provider = self.providers.get(provider_id or "")
        if provider is None or not api_key:
            return False
        return await provider.validate_key(api_key)
