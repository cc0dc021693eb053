from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterator, List, Mapping, Sequence, Tuple

from yaaai.errors import (
    CyclicDependencyError,
    DependencyFailedError,
    TaskExecutionError,
    TaskNotFoundError,
)
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage

logger = logging.getLogger(__name__)

TaskAction = Callable[[ChatMessage, Transcript], Awaitable[None]]


@dataclass(frozen=True)
class TaskDescriptor:
    """A named action and the names of the tasks it must run after."""

    name: str
    action: TaskAction
    dependencies: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", tuple(self.dependencies))


class _Mark(enum.Enum):
    IN_PROGRESS = 1
    FINISHED = 2


class TaskGraph:
    """Named tasks with declared dependencies, run in dependency order.

    Tasks are kept in registration order; that order breaks ties between
    independent parts of the graph. The execution plan is recomputed on every
    run, so changes between runs are always picked up.
    """

    def __init__(self, tasks: Sequence[TaskDescriptor] = ()) -> None:
        self._tasks: Dict[str, TaskDescriptor] = {}
        for task in tasks:
            self.add(task)

    @property
    def tasks(self) -> Mapping[str, TaskDescriptor]:
        return dict(self._tasks)

    def add(self, task: TaskDescriptor) -> None:
        self._tasks[task.name] = task

    def get(self, name: str) -> TaskDescriptor | None:
        return self._tasks.get(name)

    def has(self, name: str) -> bool:
        return name in self._tasks

    def delete(self, name: str) -> bool:
        return self._tasks.pop(name, None) is not None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def plan(self) -> List[str]:
        """Return task names ordered so every dependency precedes its dependents.

        Depth-first with an explicit stack. ``path`` mirrors the nodes marked
        in progress, so a cycle is reported from its first repeated node.
        """
        marks: Dict[str, _Mark] = {}
        order: List[str] = []

        for root in self._tasks:
            if marks.get(root) is _Mark.FINISHED:
                continue
            marks[root] = _Mark.IN_PROGRESS
            path = [root]
            pending = [iter(self._tasks[root].dependencies)]

            while pending:
                name = next(pending[-1], None)
                if name is None:
                    done = path.pop()
                    pending.pop()
                    marks[done] = _Mark.FINISHED
                    order.append(done)
                    continue

                mark = marks.get(name)
                if mark is _Mark.FINISHED:
                    continue
                if mark is _Mark.IN_PROGRESS:
                    raise CyclicDependencyError(path[path.index(name):] + [name])

                task = self._tasks.get(name)
                if task is None:
                    raise TaskNotFoundError(name)
                marks[name] = _Mark.IN_PROGRESS
                path.append(name)
                pending.append(iter(task.dependencies))

        return order

    async def execute(self, message: ChatMessage, context: Transcript) -> None:
        """Run every task one at a time, stopping at the first failure."""
        order = self.plan()
        tasks = {name: self._tasks[name] for name in order}
        logger.debug("sequential plan: %s", " -> ".join(order))

        for name in order:
            task = tasks[name]
            try:
                await task.action(message, context)
            except Exception as exc:
                logger.error('Task "%s" failed: %s', name, exc)
                raise TaskExecutionError(f'Task "{name}" failed', [exc], [name]) from exc

    async def execute_parallel(
        self,
        message: ChatMessage,
        context: Transcript,
        *,
        skip_dependents_on_failure: bool = False,
    ) -> None:
        """Run tasks concurrently; each starts once its dependencies settled.

        A failed dependency does not stop its dependents unless
        ``skip_dependents_on_failure`` is set, in which case they fail with
        :class:`DependencyFailedError` without running. All failures are
        raised together once every task has finished.
        """
        order = self.plan()
        tasks = {name: self._tasks[name] for name in order}
        logger.debug("parallel plan: %s", ", ".join(order))

        settled: Dict[str, asyncio.Event] = {name: asyncio.Event() for name in order}
        failures: Dict[str, Exception] = {}

        async def run_unit(name: str) -> None:
            task = tasks[name]
            try:
                for dependency in task.dependencies:
                    await settled[dependency].wait()
                failed = [dep for dep in task.dependencies if dep in failures]
                if failed and skip_dependents_on_failure:
                    raise DependencyFailedError(name, failed)
                await task.action(message, context)
            except Exception as exc:
                logger.error('Task "%s" failed: %s', name, exc)
                failures[name] = exc
            finally:
                settled[name].set()

        await asyncio.gather(*(run_unit(name) for name in order))

        if failures:
            names = [name for name in order if name in failures]
            raise TaskExecutionError(
                f"{len(names)} tasks failed",
                [failures[name] for name in names],
                names,
            )
