from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from keyproxy.core.errors import CredentialNotFoundError, InvalidFormatError, MissingFieldError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyFormat:
    """Prefix a provider's API keys must start with."""

    prefix: str
    label: str


class CredentialStore:
    """In-memory provider -> API key mapping. Nothing is persisted; a restart clears it."""

    def __init__(self, formats: Optional[Mapping[str, KeyFormat]] = None) -> None:
        self._lock = threading.Lock()
        self._formats: Dict[str, KeyFormat] = dict(formats or {})
        self._keys: Dict[str, str] = {}

    def save(self, provider: Optional[str], api_key: Optional[str]) -> str:
        if not provider or not api_key:
            raise MissingFieldError("Provider and API key are required")

        # Providers we don't know about are stored as-is
        fmt = self._formats.get(provider)
        if fmt is not None and not api_key.startswith(fmt.prefix):
            raise InvalidFormatError(f"Invalid {fmt.label} API key format")

        with self._lock:
            self._keys[provider] = api_key
        logger.info("Stored API key for provider=%s", provider)
        return f"{provider} API key saved"

    def get(self, provider: Optional[str]) -> Optional[str]:
        if not provider:
            return None
        with self._lock:
            return self._keys.get(provider)

    def lookup(self, provider: Optional[str]) -> str:
        api_key = self.get(provider)
        if not api_key:
            raise CredentialNotFoundError(provider)
        return api_key
