from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from yaaai.schemas.messages import ChatMessage


@dataclass
class UsageReport:
    per_key: Dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.per_key.values())


def usage_report(message: ChatMessage, skip: Iterable[str] = ("duration",)) -> UsageReport:
    """Cost of every annotation stored on ``message``; unsized entries count as zero."""
    skipped = set(skip)
    return UsageReport(
        per_key={
            key: item.size or 0
            for key, item in message.annotations.items()
            if key not in skipped
        }
    )
