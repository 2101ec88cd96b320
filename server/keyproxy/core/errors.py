from __future__ import annotations
from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base error rendered to the caller as ``{"error": ..., "details": ...}``."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details is None:
            return self.message
        return f"{self.message}: {self.details}"

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class MissingFieldError(ProxyError):
    status_code = 400


class InvalidFormatError(ProxyError):
    status_code = 400


class UnsupportedProviderError(ProxyError):
    status_code = 400

    def __init__(self, provider: Optional[str]) -> None:
        super().__init__("Unsupported provider")
        self.provider = provider


class CredentialNotFoundError(ProxyError):
    status_code = 401

    def __init__(self, provider: Optional[str]) -> None:
        super().__init__(f"No API key found for {provider}")
        self.provider = provider


class ChatRequestError(ProxyError):
    status_code = 500

    def __init__(self, details: str) -> None:
        super().__init__("Chat request failed", details=details)


class UpstreamError(ChatRequestError):
    """Non-2xx reply from a provider; ``body`` is the raw response text."""

    def __init__(self, label: str, status_code: int, body: str) -> None:
        super().__init__(f"{label} API error ({status_code}): {body}")
        self.upstream_status = status_code
        self.body = body


class ValidationFailedError(ProxyError):
    status_code = 500

    def __init__(self, details: str) -> None:
        super().__init__("Validation failed", details=details)
