from __future__ import annotations

from yaaai.errors import ConfigError
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage, CompletionOptions
from yaaai.tasks.retry import create_retry_validating_task
from yaaai.tasks.validation import validate_entities, validate_keywords
from yaaai.utils.llm_clients import CompletionPort
from yaaai.workflows.task_graph import TaskAction

SUMMARY_INSTRUCTION = (
    "For each of the user's messages, summarize in one sentence what the message is about."
)
KEYWORDS_INSTRUCTION = (
    "For each of the user's messages, extract up to 5 keywords that describe what the "
    "message is about. Return a valid JSON array of strings. Consider the entire message "
    "when extracting keywords."
)
ENTITIES_INSTRUCTION = (
    "For each of the user's messages, extract any people, places, or organizations that "
    "are mentioned. Return a valid JSON array of objects with a `category` (either "
    "`person`, `location`, or `organization`), `entity` (name) field, optional `title` "
    "string, and `aliases` array. Consider the entire message when extracting entities."
)


def create_summarize(
    completion: CompletionPort,
    instruction: str = SUMMARY_INSTRUCTION,
    temperature: float = 0.1,
) -> TaskAction:
    """Single-shot summary; free text needs no validation."""

    async def summarize(message: ChatMessage, context: Transcript) -> None:
        conversation = Transcript([ChatMessage.system(instruction), ChatMessage.user(message.content)])
        result = await completion(conversation, CompletionOptions(temperature=temperature))
        message.set("summary", result.message.content.strip(), result.usage.completion)

    return summarize


def create_extract_keywords(
    completion: CompletionPort,
    max_tries: int = 3,
    instruction: str = KEYWORDS_INSTRUCTION,
    temperature: float = 0.1,
) -> TaskAction:
    return create_retry_validating_task(
        "keywords",
        completion,
        validate_keywords,
        instruction,
        max_tries,
        CompletionOptions(temperature=temperature),
    )


def create_extract_entities(
    completion: CompletionPort,
    max_tries: int = 3,
    instruction: str = ENTITIES_INSTRUCTION,
    temperature: float = 0.1,
) -> TaskAction:
    return create_retry_validating_task(
        "entities",
        completion,
        validate_entities,
        instruction,
        max_tries,
        CompletionOptions(temperature=temperature),
    )


def build_task(
    name: str,
    completion: CompletionPort,
    *,
    instruction: str | None = None,
    max_tries: int = 3,
    temperature: float = 0.1,
) -> TaskAction:
    """Create one of the built-in enrichment tasks by its annotation key."""
    if name == "summary":
        return create_summarize(completion, instruction or SUMMARY_INSTRUCTION, temperature)
    if name == "keywords":
        return create_extract_keywords(
            completion, max_tries, instruction or KEYWORDS_INSTRUCTION, temperature
        )
    if name == "entities":
        return create_extract_entities(
            completion, max_tries, instruction or ENTITIES_INSTRUCTION, temperature
        )
    raise ConfigError(f"Unknown enrichment task: {name!r}")
