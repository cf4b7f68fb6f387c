# src/llmgate/providers/wire.py
"""
Typed views of the OpenAI-compatible wire payloads we read back.
Only the fields the gateway consumes are declared; everything else is ignored.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WireMessage(_Wire):
    role: str = "assistant"
    content: Optional[str] = None
    name: Optional[str] = None


class WireChoice(_Wire):
    index: int = 0
    message: WireMessage = WireMessage()
    finish_reason: Optional[str] = None
    delta: Optional[WireMessage] = None


class WireUsage(_Wire):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class WireCompletion(_Wire):
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: List[WireChoice]
    usage: Optional[WireUsage] = None
    metadata: Optional[Dict[str, Any]] = None


class WireErrorBody(_Wire):
    error: Any = None


class WireDelta(_Wire):
    content: Optional[str] = None


class WireStreamChoice(_Wire):
    delta: Optional[WireDelta] = None


class WireStreamEvent(_Wire):
    """One SSE 'data:' payload: {"choices": [{"delta": {"content": "..."}}]}."""
    choices: List[WireStreamChoice] = []

    def delta_text(self) -> str:
        if not self.choices:
            return ""
        delta = self.choices[0].delta
        if delta is None or not delta.content:
            return ""
        return delta.content
