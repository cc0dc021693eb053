import asyncio

import pytest

from yaaai.errors import (
    CyclicDependencyError,
    DependencyFailedError,
    TaskExecutionError,
    TaskNotFoundError,
)
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage
from yaaai.workflows.task_graph import TaskDescriptor, TaskGraph


def recorder(log, name, delay=0.0, error=None):
    async def action(message, context):
        loop = asyncio.get_running_loop()
        log.append(("start", name, loop.time()))
        if delay:
            await asyncio.sleep(delay)
        log.append(("end", name, loop.time()))
        if error is not None:
            raise error
        message.set(name, True)

    return action


def task(log, name, *deps, **kwargs):
    return TaskDescriptor(name=name, action=recorder(log, name, **kwargs), dependencies=deps)


def started(log):
    return [name for event, name, _ in log if event == "start"]


def at(log, event, name):
    return next(t for e, n, t in log if e == event and n == name)


def run_sequential(graph, message=None):
    return asyncio.run(graph.execute(message or ChatMessage.user("m"), Transcript()))


def run_parallel(graph, message=None, **kwargs):
    return asyncio.run(
        graph.execute_parallel(message or ChatMessage.user("m"), Transcript(), **kwargs)
    )


def test_plan_places_dependencies_first():
    log = []
    graph = TaskGraph(
        [
            task(log, "report", "summary", "entities"),
            task(log, "summary"),
            task(log, "entities", "keywords"),
            task(log, "keywords"),
            task(log, "standalone"),
        ]
    )

    plan = graph.plan()

    assert sorted(plan) == sorted(graph)
    for name in plan:
        for dep in graph.get(name).dependencies:
            assert plan.index(dep) < plan.index(name)


def test_plan_keeps_registration_order_between_independent_tasks():
    log = []
    graph = TaskGraph([task(log, "c", "a"), task(log, "a"), task(log, "b")])

    assert graph.plan() == ["a", "c", "b"]


def test_two_node_cycle_reports_path():
    log = []
    graph = TaskGraph([task(log, "a", "b"), task(log, "b", "a")])

    with pytest.raises(CyclicDependencyError) as excinfo:
        graph.plan()

    assert excinfo.value.path == ("a", "b", "a")
    assert str(excinfo.value) == "Cycle detected: a -> b -> a"


def test_cycle_path_starts_at_repeated_node():
    log = []
    graph = TaskGraph(
        [
            task(log, "x", "a"),
            task(log, "a", "b"),
            task(log, "b", "c"),
            task(log, "c", "a"),
        ]
    )

    with pytest.raises(CyclicDependencyError) as excinfo:
        run_parallel(graph)

    assert excinfo.value.path == ("a", "b", "c", "a")
    assert log == []


def test_self_dependency_is_a_cycle():
    graph = TaskGraph([task([], "a", "a")])

    with pytest.raises(CyclicDependencyError) as excinfo:
        graph.plan()

    assert excinfo.value.path == ("a", "a")


def test_unknown_dependency_is_reported_by_name():
    log = []
    graph = TaskGraph([task(log, "a"), task(log, "b", "a", "ghost")])

    with pytest.raises(TaskNotFoundError) as excinfo:
        run_sequential(graph)

    assert excinfo.value.name == "ghost"
    assert str(excinfo.value) == "Task not found: ghost"
    assert log == []


def test_deep_chain_does_not_recurse():
    graph = TaskGraph()
    for i in reversed(range(1, 5000)):
        graph.add(task([], f"n{i}", f"n{i - 1}"))
    graph.add(task([], "n0"))

    plan = graph.plan()

    assert plan[0] == "n0"
    assert plan[-1] == "n4999"


def test_sequential_stops_at_first_failure():
    log = []
    boom = RuntimeError("boom")
    graph = TaskGraph([task(log, "a"), task(log, "b", error=boom), task(log, "c")])
    message = ChatMessage.user("m")

    with pytest.raises(TaskExecutionError) as excinfo:
        run_sequential(graph, message)

    assert started(log) == ["a", "b"]
    assert excinfo.value.exceptions == (boom,)
    assert excinfo.value.task_names == ("b",)
    assert excinfo.value.__cause__ is boom
    assert 'Task "b" failed' in str(excinfo.value)
    assert message.get("a") is True


def test_sequential_runs_one_task_at_a_time():
    log = []
    graph = TaskGraph([task(log, "a", delay=0.01), task(log, "b", delay=0.01)])

    run_sequential(graph)

    assert [(event, name) for event, name, _ in log] == [
        ("start", "a"),
        ("end", "a"),
        ("start", "b"),
        ("end", "b"),
    ]


def test_parallel_runs_independent_tasks_despite_failure():
    log = []
    boom = ValueError("bad reply")
    graph = TaskGraph([task(log, "a", error=boom), task(log, "b"), task(log, "c")])
    message = ChatMessage.user("m")

    with pytest.raises(TaskExecutionError) as excinfo:
        run_parallel(graph, message)

    assert sorted(started(log)) == ["a", "b", "c"]
    assert excinfo.value.exceptions == (boom,)
    assert excinfo.value.task_names == ("a",)
    assert message.get("b") is True and message.get("c") is True


def test_parallel_collects_every_failure():
    log = []
    first, second = RuntimeError("first"), RuntimeError("second")
    graph = TaskGraph([task(log, "a", error=first), task(log, "b"), task(log, "c", error=second)])

    with pytest.raises(TaskExecutionError) as excinfo:
        run_parallel(graph)

    assert excinfo.value.exceptions == (first, second)
    assert str(excinfo.value).startswith("2 tasks failed")


def test_parallel_waits_for_dependencies_to_settle():
    log = []
    graph = TaskGraph(
        [
            task(log, "summary", "keywords"),
            task(log, "keywords", delay=0.05),
            task(log, "entities", delay=0.02),
        ]
    )

    run_parallel(graph)

    assert at(log, "start", "summary") >= at(log, "end", "keywords")
    # independent tasks overlap
    assert at(log, "start", "entities") < at(log, "end", "keywords")


def test_parallel_dependent_still_runs_after_dependency_failure():
    log = []
    boom = RuntimeError("upstream")
    graph = TaskGraph([task(log, "child", "parent"), task(log, "parent", delay=0.02, error=boom)])

    with pytest.raises(TaskExecutionError) as excinfo:
        run_parallel(graph)

    assert started(log) == ["parent", "child"]
    assert at(log, "start", "child") >= at(log, "end", "parent")
    assert excinfo.value.exceptions == (boom,)


def test_parallel_can_skip_dependents_of_failed_tasks():
    log = []
    boom = RuntimeError("upstream")
    graph = TaskGraph(
        [task(log, "child", "parent"), task(log, "parent", error=boom), task(log, "other")]
    )

    with pytest.raises(TaskExecutionError) as excinfo:
        run_parallel(graph, skip_dependents_on_failure=True)

    assert "child" not in started(log)
    assert excinfo.value.task_names == ("parent", "child")
    skipped = excinfo.value.exceptions[1]
    assert isinstance(skipped, DependencyFailedError)
    assert skipped.failed == ("parent",)


def test_plan_follows_graph_changes():
    log = []
    graph = TaskGraph([task(log, "a"), task(log, "b", "a")])
    assert graph.plan() == ["a", "b"]

    graph.add(task(log, "a", "c"))
    graph.add(task(log, "c"))
    assert graph.plan() == ["c", "a", "b"]

    assert graph.delete("c") is True
    with pytest.raises(TaskNotFoundError):
        graph.plan()


def test_lookup_helpers():
    log = []
    graph = TaskGraph()
    descriptor = task(log, "summary")
    graph.add(descriptor)

    assert graph.get("summary") is descriptor
    assert graph.has("summary") and "summary" in graph
    assert graph.get("missing") is None
    assert len(graph) == 1
    assert graph.delete("missing") is False
    assert graph.delete("summary") is True
    assert not graph.has("summary")
