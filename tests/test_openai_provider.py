"""Tests for the OpenAI content generator."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from contentgw.core.auth import AuthType
from contentgw.core.config import ContentGeneratorConfig
from contentgw.llm.errors import ContentGeneratorError
from contentgw.llm.openai_provider import OpenAIContentGenerator
from contentgw.llm.types import (
    Content,
    EmbedContentRequest,
    FinishReason,
    FunctionCallPart,
    FunctionDeclaration,
    FunctionResponsePart,
    GenerateContentRequest,
    TextPart,
    Tool,
)
from contentgw.telemetry import ui_telemetry_service


def make_chunk(content=None, finish_reason=None, tool_calls=None, usage=None):
    chunk = MagicMock(id="chunk-1", model="gpt-4o", usage=usage)
    chunk.choices = [
        MagicMock(
            index=0,
            delta=MagicMock(content=content, tool_calls=tool_calls),
            finish_reason=finish_reason,
        )
    ]
    return chunk


def tool_call_delta(index, id=None, name=None, arguments=None):
    function = MagicMock(arguments=arguments)
    # ``name`` is reserved by the MagicMock constructor
    function.name = name
    return MagicMock(index=index, id=id, function=function)


class TestOpenAIContentGenerator:
    @pytest.fixture
    def config(self):
        return ContentGeneratorConfig(
            model="gpt-4o",
            api_key="test-key",
            auth_type=AuthType.USE_OPENAI,
            base_url="https://api.example.com/v1",
        )

    @pytest.fixture
    def generator(self, config):
        with patch("contentgw.llm.openai_provider.AsyncOpenAI"):
            return OpenAIContentGenerator(config)

    def test_client_configuration(self, config):
        with patch("contentgw.llm.openai_provider.AsyncOpenAI") as mock_openai:
            OpenAIContentGenerator(config)

            mock_openai.assert_called_once()
            call_kwargs = mock_openai.call_args[1]
            assert call_kwargs["api_key"] == "test-key"
            assert call_kwargs["base_url"] == "https://api.example.com/v1"

    def test_convert_contents(self, generator):
        messages = generator._convert_contents([
            "hello",
            Content(role="model", parts=[
                TextPart("Checking."),
                FunctionCallPart(name="lookup", args={"q": "x"}, id="call_a"),
            ]),
            Content(role="user", parts=[
                FunctionResponsePart(name="lookup", response={"r": 1}, id="call_a"),
            ]),
        ])

        assert messages[0] == {"role": "user", "content": "hello"}
        assert messages[1]["role"] == "assistant"
        assert messages[1]["content"] == "Checking."
        assert messages[1]["tool_calls"][0]["id"] == "call_a"
        assert messages[1]["tool_calls"][0]["function"]["name"] == "lookup"
        assert messages[2] == {"role": "tool", "tool_call_id": "call_a", "content": '{"r": 1}'}

    def test_calls_without_ids_are_paired_with_results(self, generator):
        messages = generator._convert_contents([
            Content(role="model", parts=[FunctionCallPart(name="f"), FunctionCallPart(name="g")]),
            Content(role="user", parts=[
                FunctionResponsePart(name="g", response={"r": "g"}),
                FunctionResponsePart(name="f", response={"r": "f"}),
            ]),
            Content(role="model", parts=[FunctionCallPart(name="f")]),
            Content(role="user", parts=[FunctionResponsePart(name="f")]),
        ])

        call_ids = [tc["id"] for tc in messages[0]["tool_calls"]]
        assert call_ids == ["call_0", "call_1"]
        assert [(m["role"], m["tool_call_id"]) for m in messages[1:3]] == [
            ("tool", "call_1"),
            ("tool", "call_0"),
        ]
        assert messages[3]["tool_calls"][0]["id"] == "call_2"
        assert messages[4]["tool_call_id"] == "call_2"

    def test_part_order_is_preserved(self, generator):
        messages = generator._convert_contents([
            Content(role="model", parts=[FunctionCallPart(name="f", id="c1")]),
            Content(role="user", parts=[
                FunctionResponsePart(name="f", response={"ok": True}, id="c1"),
                TextPart("next"),
            ]),
        ])

        assert [m["role"] for m in messages] == ["assistant", "tool", "user"]
        assert messages[0]["content"] is None
        assert messages[1]["tool_call_id"] == "c1"
        assert messages[2] == {"role": "user", "content": "next"}

    def test_empty_content_yields_empty_message(self, generator):
        messages = generator._convert_contents([Content(role="user", parts=[])])
        assert messages == [{"role": "user", "content": ""}]

    @pytest.mark.asyncio
    async def test_generate_content(self, generator):
        usage = MagicMock(prompt_tokens=2, completion_tokens=3, total_tokens=5)
        tool_call = MagicMock(id="call_1", function=MagicMock(arguments='{"city": "Paris"}'))
        tool_call.function.name = "weather"
        response = MagicMock(id="resp-1", model="gpt-4o", usage=usage)
        response.choices = [
            MagicMock(
                index=0,
                message=MagicMock(content="Sure.", tool_calls=[tool_call]),
                finish_reason="tool_calls",
            )
        ]
        generator._client.chat.completions.create = AsyncMock(return_value=response)
        tools = [Tool(function_declarations=[FunctionDeclaration(name="weather")])]

        result = await generator.generate_content(
            GenerateContentRequest(contents="hi", tools=tools)
        )

        call_kwargs = generator._client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "gpt-4o"
        assert call_kwargs["tools"][0]["function"]["name"] == "weather"
        assert result.response_id == "resp-1"
        assert result.text == "Sure."
        assert result.function_calls == [
            FunctionCallPart(name="weather", args={"city": "Paris"}, id="call_1")
        ]
        assert result.candidates[0].finish_reason == FinishReason.FINISH_REASON_UNSPECIFIED
        assert result.usage_metadata.total_token_count == 5
        assert ui_telemetry_service.get_metrics().models["gpt-4o"].total_tokens == 5

    @pytest.mark.asyncio
    async def test_generate_content_error(self, generator):
        generator._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(ContentGeneratorError, match="^OpenAI API error: boom"):
            await generator.generate_content(GenerateContentRequest(contents="hi"))

        assert ui_telemetry_service.get_metrics().models["gpt-4o"].total_errors == 1

    @pytest.mark.asyncio
    async def test_status_error_keeps_code(self, generator):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        error = openai.APIStatusError(
            "rate limited", response=httpx.Response(429, request=request), body=None
        )
        generator._client.chat.completions.create = AsyncMock(side_effect=error)

        with pytest.raises(ContentGeneratorError) as exc_info:
            await generator.generate_content(GenerateContentRequest(contents="hi"))

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_stream(self, generator):
        mock_stream = AsyncMock()
        mock_stream.__aiter__.return_value = [
            make_chunk(content="Hello "),
            make_chunk(content="world"),
            make_chunk(finish_reason="stop"),
        ]
        generator._client.chat.completions.create = AsyncMock(return_value=mock_stream)

        stream = await generator.generate_content_stream(GenerateContentRequest(contents="hi"))
        chunks = [chunk async for chunk in stream]

        assert [c.text for c in chunks] == ["Hello ", "world", ""]
        assert chunks[0].candidates[0].finish_reason is None
        assert chunks[2].candidates[0].finish_reason == FinishReason.STOP
        assert generator._client.chat.completions.create.call_args[1]["stream"] is True
        mock_stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_accumulates_tool_calls(self, generator):
        mock_stream = AsyncMock()
        mock_stream.__aiter__.return_value = [
            make_chunk(tool_calls=[tool_call_delta(0, id="call_1", name="search", arguments='{"q": ')]),
            make_chunk(tool_calls=[tool_call_delta(0, arguments='"news"}')]),
            make_chunk(finish_reason="tool_calls"),
        ]
        generator._client.chat.completions.create = AsyncMock(return_value=mock_stream)

        stream = await generator.generate_content_stream(GenerateContentRequest(contents="hi"))
        chunks = [chunk async for chunk in stream]

        assert chunks[0].function_calls == []
        assert chunks[2].function_calls == [
            FunctionCallPart(name="search", args={"q": "news"}, id="call_1")
        ]

    @pytest.mark.asyncio
    async def test_stream_error_at_call_time(self, generator):
        generator._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(ContentGeneratorError, match="^OpenAI API streaming error: down"):
            await generator.generate_content_stream(GenerateContentRequest(contents="hi"))

    @pytest.mark.asyncio
    async def test_embed_content_orders_by_index(self, generator):
        response = MagicMock()
        response.data = [
            MagicMock(index=1, embedding=[0.2]),
            MagicMock(index=0, embedding=[0.1]),
        ]
        generator._client.embeddings.create = AsyncMock(return_value=response)

        result = await generator.embed_content(EmbedContentRequest(contents=["a", "b"]))

        assert [e.values for e in result.embeddings] == [[0.1], [0.2]]
        call_kwargs = generator._client.embeddings.create.call_args[1]
        assert call_kwargs["model"] == "text-embedding-3-small"
        assert call_kwargs["input"] == ["a", "b"]
