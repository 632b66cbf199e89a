"""Provider-neutral content types shared across generators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class TextPart:
    text: str


@dataclass
class FunctionCallPart:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass
class FunctionResponsePart:
    name: str
    response: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


# Closed set of part kinds. Converters dispatch on these with isinstance.
Part = TextPart | FunctionCallPart | FunctionResponsePart


@dataclass
class Content:
    role: str  # "user", "model", "system"
    parts: list[Part] = field(default_factory=list)


@dataclass
class FunctionDeclaration:
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


@dataclass
class Tool:
    function_declarations: list[FunctionDeclaration] = field(default_factory=list)


@dataclass
class GenerateContentRequest:
    contents: list[Content | str] | Content | str
    tools: list[Tool] | None = None
    model: str | None = None


class FinishReason(str, Enum):
    FINISH_REASON_UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"


@dataclass
class UsageMetadata:
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


@dataclass
class Candidate:
    index: int
    content: Content
    finish_reason: FinishReason | None = None


@dataclass
class GenerateContentResponse:
    response_id: str | None = None
    model_version: str | None = None
    candidates: list[Candidate] = field(default_factory=list)
    usage_metadata: UsageMetadata | None = None

    @property
    def text(self) -> str:
        """Concatenated text of the first candidate."""
        if not self.candidates:
            return ""
        return "".join(
            part.text
            for part in self.candidates[0].content.parts
            if isinstance(part, TextPart)
        )

    @property
    def function_calls(self) -> list[FunctionCallPart]:
        if not self.candidates:
            return []
        return [
            part
            for part in self.candidates[0].content.parts
            if isinstance(part, FunctionCallPart)
        ]


@dataclass
class CountTokensRequest:
    contents: list[Content | str] | Content | str


@dataclass
class CountTokensResponse:
    total_tokens: int = 0


@dataclass
class EmbedContentRequest:
    contents: list[Content | str] | Content | str
    model: str | None = None


@dataclass
class ContentEmbedding:
    values: list[float] = field(default_factory=list)


@dataclass
class EmbedContentResponse:
    embeddings: list[ContentEmbedding] = field(default_factory=list)


def normalize_contents(contents: list[Content | str] | Content | str | None) -> list[Content]:
    """Turn the loose request shapes into a list of Content; strings become user turns."""
    if contents is None:
        return []
    if not isinstance(contents, list):
        contents = [contents]
    result = []
    for item in contents:
        if isinstance(item, str):
            result.append(Content(role="user", parts=[TextPart(text=item)]))
        else:
            result.append(item)
    return result
