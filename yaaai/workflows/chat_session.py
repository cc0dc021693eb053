from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from yaaai.errors import TaskExecutionError
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage, CompletionOptions
from yaaai.utils.llm_clients import CompletionPort
from yaaai.workflows.task_graph import TaskGraph

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    user: ChatMessage
    assistant: ChatMessage
    errors: List[TaskExecutionError] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return (self.user.get("duration") or 0.0) + (self.assistant.get("duration") or 0.0)


class ChatSession:
    """Conversation loop that enriches both sides of every exchange.

    One turn enriches the user message, appends it, asks for the assistant
    reply and enriches that too. Enrichment failures are logged and returned
    with the turn; the conversation itself carries on. A failed completion
    propagates and leaves the user turn in the transcript.
    """

    def __init__(
        self,
        completion: CompletionPort,
        graph: TaskGraph,
        system_prompt: str | None = None,
        parallel: bool = True,
        skip_dependents_on_failure: bool = False,
        options: CompletionOptions | None = None,
        transcript: Transcript | None = None,
    ) -> None:
        self.completion = completion
        self.graph = graph
        self.parallel = parallel
        self.skip_dependents_on_failure = skip_dependents_on_failure
        self.options = options
        self.transcript = transcript or Transcript()
        if system_prompt and not len(self.transcript):
            self.transcript.append(ChatMessage.system(system_prompt))

    async def enrich(self, message: ChatMessage) -> None:
        if self.parallel:
            await self.graph.execute_parallel(
                message,
                self.transcript,
                skip_dependents_on_failure=self.skip_dependents_on_failure,
            )
        else:
            await self.graph.execute(message, self.transcript)

    async def turn(self, user_input: str) -> TurnResult:
        errors: List[TaskExecutionError] = []

        user = ChatMessage.user(user_input)
        await self._enrich_logged(user, errors)
        self.transcript.append(user)

        logger.info("Processing completion...")
        result = await self.completion(self.transcript, self.options)
        assistant = result.message
        assistant.set("duration", result.duration)
        self.transcript.append(assistant)
        await self._enrich_logged(assistant, errors)

        return TurnResult(user=user, assistant=assistant, errors=errors)

    async def _enrich_logged(self, message: ChatMessage, errors: List[TaskExecutionError]) -> None:
        try:
            await self.enrich(message)
        except TaskExecutionError as exc:
            logger.warning("enrichment of %s message failed: %s", message.role, exc)
            errors.append(exc)
