from __future__ import annotations

from typing import List, Sequence, Union

import pytest

from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage, Completion, CompletionOptions, CompletionUsage
from yaaai.utils.llm_clients import CompletionPort


class ScriptedCompletion(CompletionPort):
    """Replays canned replies in order; the last one repeats once the script runs out."""

    def __init__(self, replies: Sequence[Union[str, Exception]], tokens: int = 7) -> None:
        self.replies: List[Union[str, Exception]] = list(replies)
        self.tokens = tokens
        self.calls: List[List[dict]] = []
        self.options: List[CompletionOptions | None] = []

    async def __call__(
        self, transcript: Transcript, options: CompletionOptions | None = None
    ) -> Completion:
        self.calls.append(transcript.to_wire())
        self.options.append(options)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return Completion(
            message=ChatMessage.assistant(reply, size=self.tokens),
            usage=CompletionUsage(prompt=transcript.size, completion=self.tokens),
            duration=1.5,
        )


@pytest.fixture
def scripted():
    return ScriptedCompletion
