"""Tests for the OpenAI-compatible LLM client."""
from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from investigator.errors import LLMError
from investigator.llm_client import (
    LLMClient,
    extract_json_payload,
    get_client,
    parse_json_result,
    resolve_model,
)
from investigator.models.agent import LLMModel


class _Answer(BaseModel):
    summary: str
    confidence: float = 0.5


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for chunk in self._chunks:
            yield chunk

    async def close(self):
        self.closed = True


def _text_chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))], usage=None)


def _usage_chunk(prompt_tokens, completion_tokens):
    return SimpleNamespace(
        choices=[],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class _FakeCompletions:
    def __init__(self, response=None, stream=None, error=None):
        self.response = response
        self.stream = stream
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self.stream
        return self.response


def _openai(completions: _FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestParsing:
    def test_extract_json_payload_plain(self):
        assert extract_json_payload('{"summary": "ok"}') == {"summary": "ok"}

    def test_extract_json_payload_strips_code_fence(self):
        raw = '```json\n{"summary": "fenced", "confidence": 0.9}\n```'
        assert extract_json_payload(raw) == {"summary": "fenced", "confidence": 0.9}

    def test_extract_json_payload_finds_embedded_object(self):
        raw = 'Here is the answer: {"summary": "embedded"} hope that helps'
        assert extract_json_payload(raw) == {"summary": "embedded"}

    def test_extract_json_payload_raises_without_json(self):
        with pytest.raises(ValueError):
            extract_json_payload("no structure at all")

    def test_parse_json_result_success(self):
        result = parse_json_result('{"summary": "s", "confidence": 0.8}', _Answer, _Answer(summary="fallback"))
        assert result.parsed is True
        assert result.value.summary == "s"
        assert result.error is None

    def test_parse_json_result_falls_back_on_garbage(self):
        fallback = _Answer(summary="fallback")
        result = parse_json_result("sorry, I cannot do that", _Answer, fallback)
        assert result.parsed is False
        assert result.value is fallback
        assert result.raw == "sorry, I cannot do that"
        assert result.error

    def test_parse_json_result_falls_back_on_wrong_shape(self):
        result = parse_json_result('{"confidence": "high"}', _Answer, _Answer(summary="fallback"))
        assert result.parsed is False
        assert result.value.summary == "fallback"


class TestResolveModel:
    def test_maps_enum_to_provider_id(self):
        assert resolve_model(LLMModel.GPT_4) == "openai/gpt-4"
        assert resolve_model("groq-llama") == "meta-llama/llama-3.3-70b-instruct"

    def test_unknown_id_passes_through(self):
        assert resolve_model("mistralai/mixtral-8x7b") == "mistralai/mixtral-8x7b"


class TestComplete:
    @pytest.mark.asyncio
    async def test_complete_returns_text_and_usage(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        )
        completions = _FakeCompletions(response=response)
        llm = LLMClient(_openai(completions), default_model="test/model")

        result = await llm.complete("Say hello", system="Be brief")

        assert result.text == "hello"
        assert result.usage.input_tokens == 12
        assert result.usage.output_tokens == 3
        assert result.model == "test/model"
        assert completions.kwargs["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Say hello"},
        ]

    @pytest.mark.asyncio
    async def test_complete_wraps_transport_errors(self):
        llm = LLMClient(_openai(_FakeCompletions(error=RuntimeError("502 bad gateway"))))

        with pytest.raises(LLMError, match="502 bad gateway"):
            await llm.complete("hi")


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_yields_fragments_in_order(self):
        upstream = _FakeStream([_text_chunk("Hel"), _text_chunk("lo"), _text_chunk(None), _usage_chunk(4, 2)])
        completions = _FakeCompletions(stream=upstream)
        llm = LLMClient(_openai(completions), default_model="test/model")

        async with llm.stream("greet") as stream:
            chunks = [chunk async for chunk in stream.text_stream]

        assert chunks == ["Hel", "lo"]
        assert stream.finished is True
        assert stream.usage.input_tokens == 4
        assert stream.usage.output_tokens == 2
        assert upstream.closed is True
        assert completions.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_leaving_early_closes_upstream(self):
        upstream = _FakeStream([_text_chunk("a"), _text_chunk("b"), _text_chunk("c")])
        llm = LLMClient(_openai(_FakeCompletions(stream=upstream)))

        async with llm.stream("letters") as stream:
            async for chunk in stream.text_stream:
                assert chunk == "a"
                break

        assert upstream.closed is True
        assert stream.finished is False

    @pytest.mark.asyncio
    async def test_stream_open_failure_raises_llm_error(self):
        llm = LLMClient(_openai(_FakeCompletions(error=RuntimeError("rate limited"))))

        with pytest.raises(LLMError, match="rate limited"):
            async with llm.stream("x"):
                pass


class TestGetClient:
    def test_get_client_uses_configured_endpoint(self):
        with (
            patch("investigator.llm_client.settings") as mock_settings,
            patch("openai.AsyncOpenAI") as mock_openai,
        ):
            mock_settings.llm_api_key = "sk-or-test"
            mock_settings.llm_base_url = "https://openrouter.ai/api/v1"
            mock_settings.llm_timeout_seconds = 30.0
            mock_settings.llm_model_ids = {"groq-llama": "meta-llama/llama-3.3-70b-instruct"}

            llm = get_client()

        mock_openai.assert_called_once_with(
            api_key="sk-or-test",
            base_url="https://openrouter.ai/api/v1",
            timeout=30.0,
        )
        assert isinstance(llm, LLMClient)
        assert llm.default_model == "meta-llama/llama-3.3-70b-instruct"
