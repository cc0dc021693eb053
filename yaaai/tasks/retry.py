from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from yaaai.errors import RetriesExhaustedError
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage, CompletionOptions
from yaaai.tasks.validation import Invalid, ParseFailed, Validator, decode_json
from yaaai.utils.llm_clients import CompletionPort
from yaaai.workflows.task_graph import TaskAction

logger = logging.getLogger(__name__)

RETRY_PROMPT = "Unable to parse response. Please fix the error and try again.\n\nError: {error}"


@dataclass
class RetryState:
    """Per-invocation state; never shared with the caller's transcript."""

    conversation: Transcript
    attempt: int = 1
    last_error: Optional[str] = None

    def reject(self, reply: ChatMessage, reason: str) -> None:
        self.conversation.append(reply, ChatMessage.user(RETRY_PROMPT.format(error=reason)))
        self.last_error = reason
        self.attempt += 1


def create_retry_validating_task(
    key: str,
    completion: CompletionPort,
    validator: Validator,
    system_instruction: str,
    max_tries: int = 3,
    options: CompletionOptions | None = None,
) -> TaskAction:
    """Create a task that asks for JSON, validates it and stores it under ``key``.

    Malformed or invalid replies are fed back into a private conversation and
    retried up to ``max_tries`` attempts in total. Errors raised by the
    completion service itself are not retried.
    """
    if max_tries < 1:
        raise ValueError("max_tries must be at least 1")

    async def run(message: ChatMessage, context: Transcript) -> None:
        state = RetryState(
            conversation=Transcript(
                [ChatMessage.system(system_instruction), ChatMessage.user(message.content)]
            )
        )

        while state.attempt <= max_tries:
            logger.debug("Running '%s' for try #%d", key, state.attempt)
            result = await completion(state.conversation, options)

            decoded = decode_json(result.message.content)
            if isinstance(decoded, ParseFailed):
                logger.warning("'%s' try #%d: %s", key, state.attempt, decoded.reason)
                state.reject(result.message, decoded.reason)
                continue

            outcome = validator(decoded.value)
            if isinstance(outcome, Invalid):
                logger.warning("'%s' try #%d: %s", key, state.attempt, outcome.reason)
                state.reject(result.message, outcome.reason)
                continue

            message.set(key, outcome.value, result.usage.completion)
            return

        raise RetriesExhaustedError(key, max_tries, state.last_error)

    run.__name__ = f"extract_{key}"
    return run
