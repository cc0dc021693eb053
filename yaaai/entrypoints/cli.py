from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from yaaai.errors import CompletionError, ConfigError, TaskExecutionError, YaaaiError
from yaaai.evaluation.usage import usage_report
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ChatMessage, CompletionOptions
from yaaai.tasks.extraction import build_task
from yaaai.telemetry.logging import setup_logging
from yaaai.utils.llm_clients import CompletionPort, build_completion
from yaaai.utils.secrets import export_api_keys
from yaaai.utils.settings import AppConfig, load_config
from yaaai.workflows.chat_session import ChatSession
from yaaai.workflows.task_graph import TaskDescriptor, TaskGraph


def build_graph(config: AppConfig, completion: CompletionPort) -> TaskGraph:
    graph = TaskGraph()
    for name, task_config in config.tasks.items():
        if not task_config.enabled:
            continue
        action = build_task(
            name,
            completion,
            instruction=task_config.read_prompt(config.root_dir),
            max_tries=task_config.max_tries,
            temperature=task_config.temperature,
        )
        graph.add(TaskDescriptor(name=name, action=action, dependencies=task_config.depends_on))
    try:
        graph.plan()
    except YaaaiError as exc:
        raise ConfigError(f"Invalid task dependencies: {exc}") from exc
    return graph


def format_annotations(message: ChatMessage) -> str:
    lines: List[str] = []
    summary = message.get("summary")
    if summary:
        lines.append(f"Summary: {summary}")
    keywords = message.get("keywords")
    if keywords:
        lines.append(f"Keywords: {', '.join(keywords)}")
    entities = message.get("entities")
    if entities:
        lines.append("Entities:")
        lines.extend(f"  {e.entity} ({e.category})" for e in entities)
    report = usage_report(message)
    if report.per_key:
        costs = ", ".join(f"{key}={size}" for key, size in report.per_key.items())
        lines.append(f"Cost: {report.total} tokens ({costs})")
    return "\n".join(lines)


def _print_failures(exc: TaskExecutionError) -> None:
    print(f"{exc.message}:", file=sys.stderr)
    for name, cause in zip(exc.task_names, exc.exceptions):
        print(f"  {name}: {cause}", file=sys.stderr)


async def run_enrich(text: str, config: AppConfig, graph: TaskGraph, parallel: bool) -> int:
    message = ChatMessage.user(text)
    context = Transcript([ChatMessage.system(config.chat.system_prompt), message])
    try:
        if parallel:
            await graph.execute_parallel(
                message,
                context,
                skip_dependents_on_failure=config.workflow.skip_dependents_on_failure,
            )
        else:
            await graph.execute(message, context)
    except TaskExecutionError as exc:
        _print_failures(exc)
        print(format_annotations(message))
        return 1
    print(format_annotations(message))
    return 0


async def run_chat(
    config: AppConfig, completion: CompletionPort, graph: TaskGraph, parallel: bool
) -> int:
    session = ChatSession(
        completion,
        graph,
        system_prompt=config.chat.system_prompt,
        parallel=parallel,
        skip_dependents_on_failure=config.workflow.skip_dependents_on_failure,
        options=CompletionOptions(temperature=config.chat.temperature),
    )
    while True:
        try:
            user_input = await asyncio.to_thread(input, "> ")
        except EOFError:
            return 0
        if user_input.strip() == "exit":
            return 0
        if not user_input.strip():
            continue

        try:
            result = await session.turn(user_input)
        except CompletionError as exc:
            print(f"Completion failed: {exc}", file=sys.stderr)
            continue
        for exc in result.errors:
            _print_failures(exc)
        print(f"\n[user]\n{format_annotations(result.user)}")
        print(f"\n[assistant]\n{result.assistant.content}\n{format_annotations(result.assistant)}")
        print(f"Total duration: {result.total_duration:.0f}ms\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="yaaai",
        description="Enrich chat messages with summaries, keywords and named entities.",
    )
    parser.add_argument("--env", default="base", help="Config environment (base, dev, ...).")
    parser.add_argument("--config-dir", default="configs", help="Directory holding <env>.yaml files.")
    parser.add_argument("--secrets", default="secrets.yml", help="Optional YAML file with API keys.")
    parser.add_argument("--sequential", action="store_true", help="Run tasks one at a time.")
    commands = parser.add_subparsers(dest="command", required=True)
    enrich = commands.add_parser("enrich", help="Enrich a single text and print the annotations.")
    enrich.add_argument("text", help="Message content to enrich.")
    commands.add_parser("chat", help="Interactive chat; type 'exit' to quit.")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env, args.config_dir)
        setup_logging(config.logging.level)
        export_api_keys(args.secrets)
        completion = build_completion(config.llm)
        graph = build_graph(config, completion)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 2
    parallel = config.workflow.parallel and not args.sequential

    if args.command == "enrich":
        return asyncio.run(run_enrich(args.text, config, graph, parallel))
    return asyncio.run(run_chat(config, completion, graph, parallel))


if __name__ == "__main__":
    sys.exit(main())
