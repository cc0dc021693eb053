from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class Annotation:
    """A single stored value and its optional cost (usually completion tokens)."""

    content: Any
    size: Optional[int] = None


class AnnotationStore:
    """Key-value storage for task outputs attached to a message or transcript.

    Writes are not serialized: tasks are expected to own distinct keys, and a
    second write to the same key replaces the first.
    """

    def __init__(self) -> None:
        self._store: Dict[str, Annotation] = {}

    def reset(self) -> None:
        self._store.clear()

    def set(self, key: str, content: Any, size: Optional[int] = None) -> None:
        self._store[key] = Annotation(content=content, size=size)

    def get(self, key: str, default: Any = None) -> Any:
        item = self._store.get(key)
        return default if item is None else item.content

    def item(self, key: str) -> Annotation | None:
        return self._store.get(key)

    def total_size(self) -> int:
        return sum(item.size or 0 for item in self._store.values())

    def as_dict(self) -> Dict[str, Any]:
        return {key: item.content for key, item in self._store.items()}

    def items(self) -> List[Tuple[str, Annotation]]:
        return list(self._store.items())

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __iter__(self) -> Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)
