from __future__ import annotations

from typing import Sequence


class YaaaiError(Exception):
    """Base class for every error raised by the enrichment pipeline."""


class ConfigError(YaaaiError):
    pass


class CompletionError(YaaaiError):
    """The completion service failed or returned a non-success response."""


class CyclicDependencyError(YaaaiError):
    """Raised when the task graph contains a dependency cycle."""

    def __init__(self, path: Sequence[str]) -> None:
        self.path = tuple(path)
        super().__init__(f"Cycle detected: {self.format_path(self.path)}")

    @staticmethod
    def format_path(path: Sequence[str]) -> str:
        return " -> ".join(path)


class TaskNotFoundError(YaaaiError, KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Task not found: {name}")

    def __str__(self) -> str:
        return self.args[0]


class DependencyFailedError(YaaaiError):
    """A task was skipped because one of its dependencies failed."""

    def __init__(self, name: str, failed: Sequence[str]) -> None:
        self.name = name
        self.failed = tuple(failed)
        super().__init__(
            f'Task "{name}" skipped: dependencies failed ({", ".join(self.failed)})'
        )


class RetriesExhaustedError(YaaaiError):
    def __init__(self, key: str, attempts: int, last_error: str | None = None) -> None:
        self.key = key
        self.attempts = attempts
        self.last_error = last_error
        message = f"Unable to parse '{key}' response after {attempts} tries"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(message)


class TaskExecutionError(ExceptionGroup):
    """One or more tasks of a graph run failed.

    ``exceptions`` holds the underlying causes and ``task_names`` the names of
    the failed tasks, in the same order.
    """

    def __new__(cls, message: str, exceptions: Sequence[Exception], task_names: Sequence[str] = ()):
        self = super().__new__(cls, message, list(exceptions))
        self.task_names = tuple(task_names)
        return self

    def derive(self, excs):
        names = tuple(
            name for name, exc in zip(self.task_names, self.exceptions) if exc in excs
        )
        return TaskExecutionError(self.message, excs, names)
