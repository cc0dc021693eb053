from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

import openai

from yaaai.errors import CompletionError, ConfigError
from yaaai.memory.transcript import Transcript
from yaaai.schemas.messages import ASSISTANT, ChatMessage, Completion, CompletionOptions, CompletionUsage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:1234/v1"


class CompletionPort(ABC):
    """Async interface so tasks can swap between real and stub models."""

    @abstractmethod
    async def __call__(
        self, transcript: Transcript, options: CompletionOptions | None = None
    ) -> Completion:
        """Return the assistant reply for the given transcript."""


class OpenAICompletion(CompletionPort):
    """Chat completions against any OpenAI-compatible endpoint."""

    def __init__(self, client: Any, model: str, defaults: CompletionOptions | None = None) -> None:
        self.client = client
        self.model = model
        self.defaults = defaults or CompletionOptions()

    async def __call__(
        self, transcript: Transcript, options: CompletionOptions | None = None
    ) -> Completion:
        kwargs = {**self.defaults.as_kwargs(), **(options or CompletionOptions()).as_kwargs()}
        start = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=transcript.to_wire(),
                **kwargs,
            )
        except openai.APIError as exc:
            raise CompletionError(f"Chat completion failed: {exc}") from exc
        duration = (time.perf_counter() - start) * 1000

        if not response.choices:
            raise CompletionError("Chat completion returned no choices")
        choice = response.choices[0].message
        usage = CompletionUsage(
            prompt=response.usage.prompt_tokens if response.usage else 0,
            completion=response.usage.completion_tokens if response.usage else 0,
        )
        message = ChatMessage(
            role=choice.role or ASSISTANT,
            content=choice.content or "",
            size=usage.completion,
        )
        logger.debug("completion from %s took %.1fms (%d tokens)", self.model, duration, usage.completion)
        return Completion(message=message, usage=usage, duration=duration)


class LangChainCompletion(CompletionPort):
    """Adapter for LangChain chat models (ChatDeepSeek, ChatOpenAI, ...)."""

    _ROLES = {"system": "system", "user": "human", "assistant": "ai"}

    def __init__(self, model: Any) -> None:
        self.model = model

    async def __call__(
        self, transcript: Transcript, options: CompletionOptions | None = None
    ) -> Completion:
        kwargs = (options or CompletionOptions()).as_kwargs()
        runnable = self.model.bind(**kwargs) if kwargs else self.model
        messages = [(self._ROLES.get(turn.role, turn.role), turn.content) for turn in transcript]

        start = time.perf_counter()
        try:
            response = await runnable.ainvoke(messages)
        except openai.APIError as exc:
            raise CompletionError(f"Chat completion failed: {exc}") from exc
        duration = (time.perf_counter() - start) * 1000

        metadata = getattr(response, "usage_metadata", None) or {}
        usage = CompletionUsage(
            prompt=metadata.get("input_tokens", 0),
            completion=metadata.get("output_tokens", 0),
        )
        content = response.content if isinstance(response.content, str) else str(response.content)
        message = ChatMessage(role=ASSISTANT, content=content, size=usage.completion)
        return Completion(message=message, usage=usage, duration=duration)


class EchoCompletion(CompletionPort):
    """Fallback implementation used for local runs without external APIs."""

    async def __call__(
        self, transcript: Transcript, options: CompletionOptions | None = None
    ) -> Completion:
        user_turns = [turn for turn in transcript if turn.role == "user"]
        content = user_turns[-1].content if user_turns else ""
        size = len(content.split())
        return Completion(
            message=ChatMessage(role=ASSISTANT, content=content, size=size),
            usage=CompletionUsage(prompt=transcript.size, completion=size),
            duration=0.0,
        )


def build_completion(llm_config) -> CompletionPort:
    """Create the completion port described by the ``llm`` config section."""
    provider = llm_config.provider
    defaults = CompletionOptions(temperature=llm_config.temperature)
    api_key = os.environ.get(llm_config.api_key_env) if llm_config.api_key_env else None

    if provider == "echo":
        return EchoCompletion()
    if provider == "openai":
        client_kwargs: dict = {}
        if llm_config.timeout is not None:
            client_kwargs["timeout"] = llm_config.timeout
        client = openai.AsyncOpenAI(
            base_url=llm_config.base_url or DEFAULT_BASE_URL,
            # Local servers ignore the key but the SDK insists on one.
            api_key=api_key or "not-needed",
            max_retries=llm_config.max_retries,
            **client_kwargs,
        )
        return OpenAICompletion(client, model=llm_config.model, defaults=defaults)
    if provider == "deepseek":
        from langchain_deepseek import ChatDeepSeek

        model_kwargs: dict = {}
        if api_key:
            model_kwargs["api_key"] = api_key
        model = ChatDeepSeek(
            model=llm_config.model,
            temperature=llm_config.temperature,
            timeout=llm_config.timeout,
            max_retries=llm_config.max_retries,
            **model_kwargs,
        )
        return LangChainCompletion(model)
    raise ConfigError(f"Unknown llm provider: {provider!r}")
