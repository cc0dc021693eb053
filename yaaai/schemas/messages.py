from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from yaaai.memory.artifacts import AnnotationStore

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    """Single conversation turn plus the annotations tasks attach to it."""

    role: str
    content: str
    size: Optional[int] = None
    annotations: AnnotationStore = field(default_factory=AnnotationStore, repr=False, compare=False)

    @classmethod
    def system(cls, content: str, size: Optional[int] = None) -> "ChatMessage":
        return cls(role=SYSTEM, content=content, size=size)

    @classmethod
    def user(cls, content: str, size: Optional[int] = None) -> "ChatMessage":
        return cls(role=USER, content=content, size=size)

    @classmethod
    def assistant(cls, content: str, size: Optional[int] = None) -> "ChatMessage":
        return cls(role=ASSISTANT, content=content, size=size)

    def set(self, key: str, content: Any, size: Optional[int] = None) -> None:
        self.annotations.set(key, content, size)

    def get(self, key: str, default: Any = None) -> Any:
        return self.annotations.get(key, default)

    @property
    def data(self) -> Dict[str, Any]:
        return self.annotations.as_dict()

    def to_wire(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class CompletionUsage:
    prompt: int = 0
    completion: int = 0


@dataclass
class Completion:
    """Result of one call to the completion service."""

    message: ChatMessage
    usage: CompletionUsage
    duration: float


@dataclass
class CompletionOptions:
    """Sampling options forwarded to the completion service; unset fields are omitted."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: Optional[str | list[str]] = None

    def as_kwargs(self) -> Dict[str, Any]:
        return {name: value for name, value in self.__dict__.items() if value is not None}
