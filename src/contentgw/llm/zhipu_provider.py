"""Zhipu AI (BigModel) content generator over the chat-completions REST API."""

from __future__ import annotations

import logging
from typing import AsyncGenerator, AsyncIterator, Iterable

import httpx

from contentgw.core.config import ContentGeneratorConfig
from contentgw.llm.errors import ContentGeneratorError
from contentgw.llm.sse import LineDecoder, iter_payloads
from contentgw.llm.tracking import CallTracker
from contentgw.llm.types import (
    ContentEmbedding,
    CountTokensRequest,
    CountTokensResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    GenerateContentRequest,
    GenerateContentResponse,
    UsageMetadata,
)
from contentgw.llm.zhipu_format import (
    build_chat_request,
    from_vendor_response,
    to_embedding_input,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v4"
DEFAULT_EMBEDDING_MODEL = "embedding-2"


class FragmentStream:
    """Streamed fragments plus the HTTP response and client they read from."""

    def __init__(
        self,
        fragments: AsyncGenerator[GenerateContentResponse, None],
        response: httpx.Response,
        client: httpx.AsyncClient,
    ):
        self._fragments = fragments
        self._response = response
        self._client = client

    def __aiter__(self) -> FragmentStream:
        return self

    async def __anext__(self) -> GenerateContentResponse:
        return await self._fragments.__anext__()

    async def aclose(self) -> None:
        # A generator closed before its first step skips its finally block.
        await self._fragments.aclose()
        await self._response.aclose()
        await self._client.aclose()


class ZhipuContentGenerator:
    """Zhipu chat completion, streaming, and embedding generator.

    Connection settings are fixed at construction. Every call opens its own
    HTTP client, so concurrent calls share no mutable state.
    """

    provider_name = "zhipu"

    def __init__(
        self,
        config: ContentGeneratorConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._api_key = config.api_key
        self._model = config.model
        self._embedding_model = config.embedding_model or DEFAULT_EMBEDDING_MODEL
        self._base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = config.timeout
        self._transport = transport

    @property
    def model(self) -> str:
        return self._model

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

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
            body = build_chat_request(model, request.contents, request.tools, stream=False)
            logger.debug(
                "Zhipu request model=%s messages=%d tools=%d",
                model,
                len(body["messages"]),
                len(body.get("tools", [])),
            )
            async with self._client() as client:
                response = await client.post(
                    f"{self._base_url}/chat/completions",
                    json=body,
                    headers=self._headers(),
                )
            response.raise_for_status()
            result = from_vendor_response(response.json())
        except Exception as e:
            error = self._wrap_error(e, "Zhipu API error")
            tracker.error(error, e)
            raise error from e

        tracker.response(result.usage_metadata)
        return result

    async def generate_content_stream(
        self, request: GenerateContentRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        """Start a streaming chat completion.

        The request is sent and its status checked before this returns; the
        returned iterator then yields one response per streamed payload.
        Closing the returned stream releases the connection even if no
        fragment was pulled.
        """
        model = request.model or self._model
        tracker = self._tracker(model)
        client = self._client()

        try:
            body = build_chat_request(model, request.contents, request.tools, stream=True)
            http_request = client.build_request(
                "POST",
                f"{self._base_url}/chat/completions",
                json=body,
                headers=self._headers(),
            )
            response = await client.send(http_request, stream=True)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError:
                await response.aclose()
                raise
        except Exception as e:
            await client.aclose()
            error = self._wrap_error(e, "Zhipu API streaming error")
            tracker.error(error, e)
            raise error from e

        return FragmentStream(self._stream_fragments(client, response, tracker), response, client)

    async def _stream_fragments(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        tracker: CallTracker,
    ) -> AsyncIterator[GenerateContentResponse]:
        decoder = LineDecoder()
        usage: UsageMetadata | None = None
        try:
            async for chunk in response.aiter_bytes():
                for fragment in self._fragments(iter_payloads(decoder.feed(chunk))):
                    usage = fragment.usage_metadata or usage
                    yield fragment

            remainder = decoder.flush()
            if remainder.strip():
                for fragment in self._fragments(iter_payloads([remainder], allow_bare=True)):
                    usage = fragment.usage_metadata or usage
                    yield fragment
        except Exception as e:
            error = self._wrap_error(e, "Zhipu API streaming error")
            tracker.error(error, e)
            raise error from e
        finally:
            await response.aclose()
            await client.aclose()

        tracker.response(usage)

    @staticmethod
    def _fragments(payloads: Iterable[dict]) -> Iterable[GenerateContentResponse]:
        for payload in payloads:
            yield from_vendor_response(payload, streaming=True)

    async def count_tokens(self, request: CountTokensRequest) -> CountTokensResponse:
        # No counting endpoint is used; callers must not budget on this value.
        return CountTokensResponse(total_tokens=0)

    async def embed_content(self, request: EmbedContentRequest) -> EmbedContentResponse:
        """Embed each input item; vectors come back in input order."""
        body = {
            "model": request.model or self._embedding_model,
            "input": to_embedding_input(request.contents),
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._base_url}/embeddings",
                    json=body,
                    headers=self._headers(),
                )
            response.raise_for_status()
            items = sorted(response.json()["data"], key=lambda item: item.get("index", 0))
            embeddings = [ContentEmbedding(values=item["embedding"]) for item in items]
        except Exception as e:
            raise self._wrap_error(e, "Zhipu Embedding API error") from e
        return EmbedContentResponse(embeddings=embeddings)

    def _wrap_error(self, e: Exception, prefix: str) -> ContentGeneratorError:
        if isinstance(e, httpx.HTTPStatusError):
            status = e.response.status_code
            return ContentGeneratorError(
                f"{prefix}: {status} {e.response.reason_phrase}",
                provider=self.provider_name,
                status_code=status,
            )
        return ContentGeneratorError(f"{prefix}: {e}", provider=self.provider_name)
