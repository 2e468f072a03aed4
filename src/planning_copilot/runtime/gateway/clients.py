"""Completion clients the execution gateway dispatches to."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Protocol

from openai import OpenAI, OpenAIError

from ...settings import GatewaySettings
from ..errors import ProviderError
from ..prompting.budget import estimate_tokens

logger = logging.getLogger(__name__)

ChatMessage = dict[str, str]
_SCRIPTED_CHUNK = 16


@dataclass(frozen=True)
class CompletionOptions:
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass(frozen=True)
class Completion:
    """Atomic completion with the provider's token usage report."""
    content: str
    input_tokens: int
    output_tokens: int
    model: str


@dataclass(frozen=True)
class StreamEvent:
    """One streamed delta, or the terminal usage report when ``done`` is set."""
    content: str = ""
    done: bool = False
    input_tokens: int = 0
    output_tokens: int = 0


class CompletionClient(Protocol):
    provider: str

    def complete(self, messages: list[ChatMessage], options: CompletionOptions) -> Completion:
        ...

    def stream(self, messages: list[ChatMessage], options: CompletionOptions) -> Iterator[StreamEvent]:
        ...


def _uget(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


class OpenAICompletionClient:
    """Chat completions through the OpenAI SDK.

    The SDK client is constructed once here. When construction fails (for
    example no API key in the environment) the failure is kept and every
    call raises :class:`ProviderError` with it.
    """
    provider = "openai"

    def __init__(self, *, base_url: Optional[str] = None, timeout: float = 120.0) -> None:
        self._client: Optional[OpenAI] = None
        self._init_error: Optional[str] = None
        try:
            self._client = OpenAI(base_url=base_url, timeout=timeout)
        except OpenAIError as exc:
            self._init_error = str(exc)
            logger.warning("OpenAI client unavailable: %s", exc)

    def _require_client(self, model: str) -> OpenAI:
        if self._client is None:
            raise ProviderError(f"OpenAI client unavailable: {self._init_error}", provider=self.provider, model=model)
        return self._client

    def complete(self, messages: list[ChatMessage], options: CompletionOptions) -> Completion:
        client = self._require_client(options.model)
        try:
            response = client.chat.completions.create(
                model=options.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI request failed: {exc}", provider=self.provider, model=options.model) from exc

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = response.usage
        return Completion(
            content=content,
            input_tokens=int(_uget(usage, "prompt_tokens") or 0),
            output_tokens=int(_uget(usage, "completion_tokens") or 0),
            model=response.model or options.model,
        )

    def stream(self, messages: list[ChatMessage], options: CompletionOptions) -> Iterator[StreamEvent]:
        client = self._require_client(options.model)
        try:
            stream = client.chat.completions.create(
                model=options.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI request failed: {exc}", provider=self.provider, model=options.model) from exc

        prompt_tokens = 0
        completion_tokens = 0
        try:
            for chunk in stream:
                # Usage arrives on the final chunk, which has no choices.
                usage = _uget(chunk, "usage")
                if usage:
                    prompt_tokens = int(_uget(usage, "prompt_tokens") or prompt_tokens)
                    completion_tokens = int(_uget(usage, "completion_tokens") or completion_tokens)
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                    yield StreamEvent(content=chunk.choices[0].delta.content)
        except OpenAIError as exc:
            raise ProviderError(f"OpenAI stream failed: {exc}", provider=self.provider, model=options.model) from exc
        finally:
            stream.close()
        yield StreamEvent(done=True, input_tokens=prompt_tokens, output_tokens=completion_tokens)


class ScriptedCompletionClient:
    """Deterministic client that replays queued replies.

    Used by tests and by local runs without provider credentials. When the
    queue is empty it answers with ``default_reply``. Token usage is
    estimated from message length so billing still has inputs.
    """
    provider = "scripted"

    def __init__(self, replies: Iterable[str] = (), *, default_reply: str = "Understood. Let's keep planning.") -> None:
        self._replies: deque[str] = deque(replies)
        self._lock = threading.Lock()
        self.default_reply = default_reply
        self.calls: list[list[ChatMessage]] = []

    def queue(self, *replies: str) -> None:
        with self._lock:
            self._replies.extend(replies)

    def _next(self, messages: list[ChatMessage]) -> str:
        with self._lock:
            self.calls.append([dict(m) for m in messages])
            return self._replies.popleft() if self._replies else self.default_reply

    def complete(self, messages: list[ChatMessage], options: CompletionOptions) -> Completion:
        content = self._next(messages)
        return Completion(
            content=content,
            input_tokens=sum(estimate_tokens(m.get("content", "")) for m in messages),
            output_tokens=estimate_tokens(content),
            model=options.model,
        )

    def stream(self, messages: list[ChatMessage], options: CompletionOptions) -> Iterator[StreamEvent]:
        completion = self.complete(messages, options)
        content = completion.content
        for start in range(0, len(content), _SCRIPTED_CHUNK):
            yield StreamEvent(content=content[start:start + _SCRIPTED_CHUNK])
        yield StreamEvent(done=True, input_tokens=completion.input_tokens, output_tokens=completion.output_tokens)


def build_completion_client(settings: GatewaySettings) -> CompletionClient:
    """Construct the client named by ``settings.provider``."""
    if settings.provider == "scripted":
        return ScriptedCompletionClient()
    return OpenAICompletionClient(base_url=settings.base_url)
