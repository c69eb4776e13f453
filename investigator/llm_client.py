"""OpenAI-compatible LLM client with completion, streaming and JSON result parsing."""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from investigator.config import settings
from investigator.errors import LLMError
from investigator.models.agent import LLMModel
from investigator.services import logger as log_service

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class LLMResponse:
    text: str
    usage: Usage
    model: str


@dataclass
class LLMResult(Generic[T]):
    """Parsed LLM output, or the call site's fallback when parsing failed."""

    value: T
    parsed: bool
    raw: str = ""
    error: str | None = None


class LLMStream:
    """Async context manager over a streamed chat completion.

    Leaving the context before the stream is exhausted closes the upstream
    response, so a consumer can stop early.
    """

    def __init__(self, stream_coro: Any, *, model: str, caller: str):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self._usage = Usage()
        self._finished = False
        self._model = model
        self._caller = caller
        self._started = 0.0

    async def __aenter__(self) -> "LLMStream":
        self._started = time.monotonic()
        try:
            self._stream = await self._stream_coro
        except Exception as exc:
            log_service.log_llm_call(
                model=self._model,
                caller=self._caller,
                status="error",
                error=str(exc),
            )
            raise LLMError(str(exc)) from exc
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            await self._stream.close()
        log_service.log_llm_call(
            model=self._model,
            caller=self._caller,
            input_tokens=self._usage.input_tokens,
            output_tokens=self._usage.output_tokens,
            duration_ms=int((time.monotonic() - self._started) * 1000),
            status="success" if exc is None else "error",
            error=str(exc) if exc is not None else None,
        )

    async def _iter_text(self) -> AsyncIterator[str]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            usage = getattr(chunk, "usage", None)
            if usage:
                self._usage = Usage(
                    input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                )
            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            if not delta:
                continue
            text = getattr(delta, "content", None)
            if text:
                yield text
        self._finished = True

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._iter_text()

    @property
    def usage(self) -> Usage:
        return self._usage

    @property
    def finished(self) -> bool:
        return self._finished


class LLMClient:
    def __init__(self, openai_client: Any, *, default_model: str | None = None):
        self._client = openai_client
        self.default_model = default_model or resolve_model(LLMModel.GROQ_LLAMA)

    @staticmethod
    def _build_messages(prompt: str, system: str | None) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        caller: str = "llm.complete",
    ) -> LLMResponse:
        used_model = model or self.default_model
        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=used_model,
                messages=self._build_messages(prompt, system),
                max_tokens=max_tokens or settings.llm_max_tokens,
                temperature=settings.llm_temperature if temperature is None else temperature,
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=used_model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise LLMError(str(exc)) from exc

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = (getattr(message, "content", None) or "") if message else ""
        usage = getattr(response, "usage", None)
        mapped_usage = Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        log_service.log_llm_call(
            model=used_model,
            caller=caller,
            input_tokens=mapped_usage.input_tokens,
            output_tokens=mapped_usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return LLMResponse(text=text, usage=mapped_usage, model=used_model)

    def stream(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        caller: str = "llm.stream",
    ) -> LLMStream:
        used_model = model or self.default_model
        stream = self._client.chat.completions.create(
            model=used_model,
            messages=self._build_messages(prompt, system),
            max_tokens=max_tokens or settings.llm_max_tokens,
            temperature=settings.llm_temperature if temperature is None else temperature,
            stream=True,
            stream_options={"include_usage": True},
        )
        return LLMStream(stream, model=used_model, caller=caller)


def resolve_model(llm_model: LLMModel | str) -> str:
    """Map an ``llm_model`` config value to the provider's model id."""
    key = llm_model.value if isinstance(llm_model, LLMModel) else str(llm_model)
    return settings.llm_model_ids.get(key, key)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def extract_json_payload(raw_text: str) -> Any:
    """Return the first JSON object or array embedded in model output."""
    text = _strip_code_fence(raw_text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    candidates = [
        (text.find("{"), text.rfind("}")),
        (text.find("["), text.rfind("]")),
    ]
    candidates = [(s, e) for s, e in candidates if s != -1 and e > s]
    candidates.sort(key=lambda pair: pair[0])
    for start, end in candidates:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            continue
    raise ValueError("No JSON payload found in model output")


def parse_json_result(raw_text: str, model_cls: type[M], fallback: M) -> LLMResult[M]:
    """Validate model output against ``model_cls``; return ``fallback`` when it does not fit."""
    try:
        payload = extract_json_payload(raw_text)
        value = model_cls.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        return LLMResult(value=fallback, parsed=False, raw=raw_text, error=str(exc))
    return LLMResult(value=value, parsed=True, raw=raw_text)


def get_client() -> LLMClient:
    """Build an LLM client against the configured OpenAI-compatible endpoint."""
    from openai import AsyncOpenAI

    base_url = settings.llm_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.llm_api_key,
        base_url=base_url,
        timeout=settings.llm_timeout_seconds,
    )
    return LLMClient(openai_client)


_client: LLMClient | None = None


def client() -> LLMClient:
    """Get or create the shared LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
