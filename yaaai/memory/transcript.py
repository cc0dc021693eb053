from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Optional

from yaaai.memory.artifacts import AnnotationStore
from yaaai.schemas.messages import ChatMessage


class Transcript:
    """Append-only conversation log passed to tasks and the completion service."""

    def __init__(self, initial: Iterable[ChatMessage] | None = None) -> None:
        self._turns: List[ChatMessage] = list(initial or [])
        self.data = AnnotationStore()

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._turns)

    @property
    def size(self) -> int:
        return sum(turn.size or 0 for turn in self._turns)

    def reset(self, initial: Iterable[ChatMessage] | None = None) -> None:
        self._turns = list(initial or [])
        self.data.reset()

    def append(self, *messages: ChatMessage) -> None:
        self._turns.extend(messages)

    def create(self, role: str, content: str, size: Optional[int] = None) -> ChatMessage:
        message = ChatMessage(role=role, content=content, size=size)
        self.append(message)
        return message

    def last(self, k: int = 1) -> List[ChatMessage]:
        if k <= 0:
            return []
        return self._turns[-k:]

    def all(self) -> List[ChatMessage]:
        return list(self._turns)

    def set(self, key: str, content: Any, size: Optional[int] = None) -> None:
        self.data.set(key, content, size)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_wire(self) -> List[dict]:
        return [turn.to_wire() for turn in self._turns]

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._turns))

    def __len__(self) -> int:
        return len(self._turns)
