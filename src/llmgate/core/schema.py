from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class Message:
    role: str            # "system" | "user" | "assistant" | "function"
    content: str
    name: str = ""

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name:
            out["name"] = self.name
        return out


@dataclass
class FunctionDef:
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass
class ResponseFormat:
    type: str = "text"   # "text" | "json_object"


@dataclass
class UnifiedRequest:
    """
    Provider-agnostic chat request.
    Sampling fields use 0 / empty as "unset"; adapters omit unset fields from the wire body.
    """
    model: str
    messages: List[Message]
    temperature: float = 0.0
    max_tokens: int = 0
    top_p: float = 0.0
    stop: List[str] = field(default_factory=list)
    stream: bool = False
    functions: List[FunctionDef] = field(default_factory=list)
    response_format: Optional[ResponseFormat] = None
    user: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Choice:
    index: int
    message: Message
    finish_reason: str = ""
    delta: Optional[Message] = None


@dataclass
class UnifiedResponse:
    id: str
    created: int
    model: str
    choices: List[Choice]
    usage: Optional[Usage] = None    # streaming responses may omit usage
    object: str = "chat.completion"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.choices[0].message.content if self.choices else ""


@dataclass
class ProviderRequest:
    """Fully resolved wire request. Scoped to one call."""
    url: str
    method: str
    headers: Dict[str, str]
    body: Any
    timeout: float


@dataclass
class ProviderResponse:
    status_code: int
    headers: Dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class StreamChunk:
    """
    Exactly one of: text data, Done marker, Error marker.
    Build through the constructors below, never by hand.
    """
    data: str = ""
    done: bool = False
    error: Optional[BaseException] = None

    def __post_init__(self):
        populated = sum((bool(self.data), self.done, self.error is not None))
        if populated != 1:
            raise ValueError("StreamChunk must carry exactly one of data, done, error")

    @classmethod
    def text(cls, data: str) -> "StreamChunk":
        return cls(data=data)

    @classmethod
    def finished(cls) -> "StreamChunk":
        return cls(done=True)

    @classmethod
    def failed(cls, error: BaseException) -> "StreamChunk":
        return cls(error=error)

    @property
    def is_terminal(self) -> bool:
        return self.done or self.error is not None


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    version: str
    supports_stream: bool
    requires_auth: bool
    max_request_size: int
    rate_limits: Mapping[str, int] = field(default_factory=dict)
