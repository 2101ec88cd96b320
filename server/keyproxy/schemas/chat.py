from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class KeyRequest(BaseModel):
    # Presence is checked by the credential store so the caller gets a 400 {error}
    provider: Optional[str] = None
    apiKey: Optional[str] = None


class ChatRequest(BaseModel):
    provider: Optional[str] = None
    model: Optional[str] = None
    # Forwarded to the provider exactly as sent
    messages: List[Any] = []
    stream: bool = False

    def payload_messages(self) -> List[Any]:
        return list(self.messages)


class ChatResult(BaseModel):
    # null when the model answered without text (refusal, tool calls)
    content: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
