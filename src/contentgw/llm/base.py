"""Abstract content generator interface."""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from contentgw.llm.types import (
    CountTokensRequest,
    CountTokensResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    GenerateContentRequest,
    GenerateContentResponse,
)


class ContentGenerator(Protocol):
    """Protocol that all content generators must implement.

    ``generate_content_stream`` is awaited first and then iterated, so
    request failures surface before the first fragment is pulled.
    """

    async def generate_content(
        self, request: GenerateContentRequest
    ) -> GenerateContentResponse: ...

    async def generate_content_stream(
        self, request: GenerateContentRequest
    ) -> AsyncIterator[GenerateContentResponse]: ...

    async def count_tokens(self, request: CountTokensRequest) -> CountTokensResponse: ...

    async def embed_content(self, request: EmbedContentRequest) -> EmbedContentResponse: ...
