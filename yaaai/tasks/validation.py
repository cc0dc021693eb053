"""Decode and validate structured replies from the completion service.

Every step returns a tagged outcome instead of raising, so the retry loop in
:mod:`yaaai.tasks.retry` can branch on plain data:

* :func:`decode_json` -> :class:`Parsed` or :class:`ParseFailed`
* a validator        -> :class:`Valid` or :class:`Invalid`
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictStr, TypeAdapter, ValidationError

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
MAX_KEYWORDS = 5


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class ParseFailed:
    reason: str


@dataclass(frozen=True)
class Valid:
    value: Any


@dataclass(frozen=True)
class Invalid:
    reason: str


DecodeOutcome = Union[Parsed, ParseFailed]
ValidationOutcome = Union[Valid, Invalid]
Validator = Callable[[Any], ValidationOutcome]


def decode_json(text: str) -> DecodeOutcome:
    """Decode a reply as JSON, accepting a single fenced ```json block."""
    raw = text.strip()
    try:
        return Parsed(json.loads(raw))
    except (ValueError, RecursionError):
        pass

    match = FENCE_RE.search(raw)
    if match:
        try:
            return Parsed(json.loads(match.group(1).strip()))
        except (ValueError, RecursionError):
            pass
    return ParseFailed("Message is not valid JSON")


def schema_validator(schema: Any, *, label: str = "Value") -> Validator:
    """Build a validator from a pydantic model or type annotation.

    The first pydantic error becomes the :class:`Invalid` reason so the model
    gets one concrete thing to fix per retry.
    """
    adapter = TypeAdapter(schema)

    def validate(value: Any) -> ValidationOutcome:
        try:
            return Valid(adapter.validate_python(value))
        except ValidationError as exc:
            return Invalid(_describe(label, exc))

    return validate


def _describe(label: str, exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = "".join(
        f"[{part}]" if isinstance(part, int) else f".{part}" for part in error["loc"]
    )
    return f"{label}{location}: {error['msg']}"


class NamedEntity(BaseModel):
    entity: StrictStr
    category: Literal["person", "location", "organization"]
    title: Optional[StrictStr] = None
    aliases: List[StrictStr] = Field(default_factory=list)


def validate_keywords(value: Any) -> ValidationOutcome:
    if not isinstance(value, list):
        return Invalid(f"Keywords must be an array, got {type(value).__name__} instead")
    if not value:
        return Invalid("Keywords must not be empty")
    bad = [item for item in value if not isinstance(item, str)]
    if bad:
        return Invalid(
            f"Keywords must be an array of strings, got {type(bad[0]).__name__} instead"
        )
    if len(value) > MAX_KEYWORDS:
        return Invalid(f"Keywords must hold at most {MAX_KEYWORDS} items, got {len(value)}")
    return Valid(list(value))


validate_entities = schema_validator(List[NamedEntity], label="Entities")
