from __future__ import annotations

import asyncio

from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage
from yaaai.workflows.task_graph import TaskAction


def pipe(*actions: TaskAction) -> TaskAction:
    """Chain actions, waiting for each to finish before starting the next."""

    async def run(message: ChatMessage, context: Transcript) -> None:
        for action in actions:
            await action(message, context)

    return run


def parallel_pipe(*actions: TaskAction) -> TaskAction:
    """Run actions concurrently; the first failure propagates."""

    async def run(message: ChatMessage, context: Transcript) -> None:
        await asyncio.gather(*(action(message, context) for action in actions))

    return run
