"""OpenAI content generator implementation."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

from openai import APIStatusError, AsyncOpenAI

from contentgw.core.config import ContentGeneratorConfig
from contentgw.llm.errors import ContentGeneratorError
from contentgw.llm.tracking import CallTracker
from contentgw.llm.types import (
    Candidate,
    Content,
    ContentEmbedding,
    CountTokensRequest,
    CountTokensResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    FunctionCallPart,
    FunctionResponsePart,
    GenerateContentRequest,
    GenerateContentResponse,
    Part,
    TextPart,
    UsageMetadata,
    normalize_contents,
)
from contentgw.llm.zhipu_format import (
    map_finish_reason,
    parse_arguments,
    to_embedding_input,
    to_vendor_role,
    to_vendor_tools,
)

logger = logging.getLogger(__name__)


class OpenAIContentGenerator:
    """OpenAI chat completion generator with streaming and tool calling."""

    provider_name = "openai"

    def __init__(self, config: ContentGeneratorConfig):
        self._config = config
        self._client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url or None,
            timeout=config.timeout,
        )
        self._model = config.model
        self._embedding_model = config.embedding_model or "text-embedding-3-small"

    @property
    def model(self) -> str:
        return self._model

    def _convert_contents(self, contents) -> list[dict]:
        """Convert generic contents to OpenAI chat messages, keeping part order.

        Calls without an id are numbered ``call_<n>`` across the whole
        conversation. A result without an id answers the latest unanswered
        call with the same name.
        """
        result: list[dict] = []
        call_count = 0
        unanswered: dict[str, list[str]] = {}

        for content in normalize_contents(contents):
            role = to_vendor_role(content.role)
            text: list[str] = []
            tool_calls: list[dict] = []
            emitted = len(result)

            def flush() -> None:
                if not text and not tool_calls:
                    return
                message: dict = {"role": role, "content": "".join(text) if text else None}
                if tool_calls:
                    message["role"] = "assistant"
                    message["tool_calls"] = list(tool_calls)
                result.append(message)
                text.clear()
                tool_calls.clear()

            for part in content.parts:
                if isinstance(part, FunctionCallPart):
                    call_id = part.id or f"call_{call_count}"
                    call_count += 1
                    unanswered.setdefault(part.name, []).append(call_id)
                    tool_calls.append({
                        "id": call_id,
                        "type": "function",
                        "function": {
                            "name": part.name,
                            "arguments": json.dumps(part.args or {}, ensure_ascii=False),
                        },
                    })
                elif isinstance(part, FunctionResponsePart):
                    flush()
                    result.append({
                        "role": "tool",
                        "tool_call_id": _answered_call_id(part, unanswered),
                        "content": json.dumps(part.response or {}, ensure_ascii=False),
                    })
                else:
                    if tool_calls:
                        flush()
                    text.append(part.text if isinstance(part, TextPart) else str(part))
            flush()

            if len(result) == emitted:
                result.append({"role": role, "content": ""})
        return result

    def _request_kwargs(self, request: GenerateContentRequest, model: str) -> dict:
        kwargs: dict = {
            "model": model,
            "messages": self._convert_contents(request.contents),
        }
        tools = to_vendor_tools(request.tools)
        if tools:
            kwargs["tools"] = tools
        logger.debug(
            "OpenAI request model=%s messages=%d tools=%d",
            model,
            len(kwargs["messages"]),
            len(tools),
        )
        return kwargs

    def _tracker(self, model: str) -> CallTracker:
        return CallTracker(
            provider=self.provider_name,
            model=model,
            auth_type=self._config.auth_type.value,
        )

    async def generate_content(self, request: GenerateContentRequest) -> GenerateContentResponse:
        """Non-streaming chat completion."""
        model = request.model or self._model
        tracker = self._tracker(model)
        try:
            response = await self._client.chat.completions.create(
                **self._request_kwargs(request, model)
            )
        except Exception as e:
            error = self._wrap_error(e, "OpenAI API error")
            tracker.error(error, e)
            raise error from e

        candidates = []
        for choice in response.choices:
            message = choice.message
            parts: list[Part] = []
            if message.content:
                parts.append(TextPart(text=message.content))
            for tc in message.tool_calls or []:
                parts.append(FunctionCallPart(
                    name=tc.function.name,
                    args=parse_arguments(tc.function.arguments),
                    id=tc.id,
                ))
            candidates.append(Candidate(
                index=choice.index,
                content=Content(role="model", parts=parts or [TextPart(text="")]),
                finish_reason=map_finish_reason(choice.finish_reason),
            ))

        result = GenerateContentResponse(
            response_id=response.id,
            model_version=response.model,
            candidates=candidates,
            usage_metadata=_usage(response.usage),
        )
        tracker.response(result.usage_metadata)
        return result

    async def generate_content_stream(
        self, request: GenerateContentRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        """Start a streaming chat completion; the returned iterator yields chunks."""
        model = request.model or self._model
        tracker = self._tracker(model)
        try:
            stream = await self._client.chat.completions.create(
                **self._request_kwargs(request, model), stream=True
            )
        except Exception as e:
            error = self._wrap_error(e, "OpenAI API streaming error")
            tracker.error(error, e)
            raise error from e
        return self._stream_chunks(stream, tracker)

    async def _stream_chunks(self, stream, tracker: CallTracker) -> AsyncIterator[GenerateContentResponse]:
        # Tool call deltas arrive in pieces keyed by index; emitted whole on finish.
        accumulated: dict[int, dict[int, dict]] = {}
        usage: UsageMetadata | None = None
        try:
            async for chunk in stream:
                chunk_usage = _usage(getattr(chunk, "usage", None))
                usage = chunk_usage or usage
                if not chunk.choices:
                    continue

                candidates = []
                for choice in chunk.choices:
                    delta = choice.delta
                    parts: list[Part] = []
                    if delta.content:
                        parts.append(TextPart(text=delta.content))

                    calls = accumulated.setdefault(choice.index, {})
                    for tc_delta in delta.tool_calls or []:
                        tc = calls.setdefault(tc_delta.index, {"id": None, "name": "", "arguments": ""})
                        if tc_delta.id:
                            tc["id"] = tc_delta.id
                        if tc_delta.function and tc_delta.function.name:
                            tc["name"] = tc_delta.function.name
                        if tc_delta.function and tc_delta.function.arguments:
                            tc["arguments"] += tc_delta.function.arguments

                    if choice.finish_reason and calls:
                        for tc in calls.values():
                            parts.append(FunctionCallPart(
                                name=tc["name"],
                                args=parse_arguments(tc["arguments"]),
                                id=tc["id"],
                            ))
                        calls.clear()

                    candidates.append(Candidate(
                        index=choice.index,
                        content=Content(role="model", parts=parts or [TextPart(text="")]),
                        finish_reason=map_finish_reason(choice.finish_reason),
                    ))

                yield GenerateContentResponse(
                    response_id=chunk.id,
                    model_version=chunk.model,
                    candidates=candidates,
                    usage_metadata=chunk_usage,
                )
        except Exception as e:
            error = self._wrap_error(e, "OpenAI API streaming error")
            tracker.error(error, e)
            raise error from e
        finally:
            await stream.close()

        tracker.response(usage)

    async def count_tokens(self, request: CountTokensRequest) -> CountTokensResponse:
        return CountTokensResponse(total_tokens=0)

    async def embed_content(self, request: EmbedContentRequest) -> EmbedContentResponse:
        """Embed each input item; vectors come back in input order."""
        try:
            response = await self._client.embeddings.create(
                model=request.model or self._embedding_model,
                input=to_embedding_input(request.contents),
            )
        except Exception as e:
            raise self._wrap_error(e, "OpenAI Embedding API error") from e
        items = sorted(response.data, key=lambda item: item.index)
        return EmbedContentResponse(
            embeddings=[ContentEmbedding(values=list(item.embedding)) for item in items]
        )

    def _wrap_error(self, e: Exception, prefix: str) -> ContentGeneratorError:
        status = e.status_code if isinstance(e, APIStatusError) else None
        return ContentGeneratorError(
            f"{prefix}: {e}",
            provider=self.provider_name,
            status_code=status,
        )


def _usage(usage) -> UsageMetadata | None:
    if not usage:
        return None
    return UsageMetadata(
        prompt_token_count=usage.prompt_tokens or 0,
        candidates_token_count=usage.completion_tokens or 0,
        total_token_count=usage.total_tokens or 0,
    )


def _answered_call_id(part: FunctionResponsePart, unanswered: dict[str, list[str]]) -> str:
    pending = unanswered.get(part.name, [])
    if part.id:
        if part.id in pending:
            pending.remove(part.id)
        return part.id
    if pending:
        return pending.pop()
    logger.warning("No earlier call to %s for function response without id", part.name)
    return ""
