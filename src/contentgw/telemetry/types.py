"""Telemetry event types emitted by content generators."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from contentgw.llm.types import UsageMetadata


class TelemetryEventName(str, Enum):
    API_RESPONSE = "contentgw.api_response"
    API_ERROR = "contentgw.api_error"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ApiResponseEvent:
    model: str
    duration_ms: int
    prompt_id: str
    auth_type: str | None = None
    usage_metadata: UsageMetadata | None = None
    response_text: str | None = None
    error: str | None = None
    event_name: TelemetryEventName = TelemetryEventName.API_RESPONSE
    timestamp: str = field(default_factory=_now)

    @property
    def input_token_count(self) -> int:
        return self.usage_metadata.prompt_token_count if self.usage_metadata else 0

    @property
    def output_token_count(self) -> int:
        return self.usage_metadata.candidates_token_count if self.usage_metadata else 0

    @property
    def total_token_count(self) -> int:
        return self.usage_metadata.total_token_count if self.usage_metadata else 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_name"] = self.event_name.value
        return data


@dataclass
class ApiErrorEvent:
    model: str
    error: str
    duration_ms: int
    prompt_id: str
    auth_type: str | None = None
    error_type: str | None = None
    status_code: int | None = None
    event_name: TelemetryEventName = TelemetryEventName.API_ERROR
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_name"] = self.event_name.value
        return data
