"""Per-call timing and telemetry emission for content generators."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from contentgw.llm.errors import ContentGeneratorError
from contentgw.llm.types import UsageMetadata
from contentgw.telemetry import (
    ApiErrorEvent,
    ApiResponseEvent,
    log_api_error,
    log_api_response,
)


@dataclass
class CallTracker:
    """Times one API call and reports its outcome exactly once."""

    provider: str
    model: str
    auth_type: str | None = None
    start: float = field(default_factory=time.monotonic)
    prompt_id: str = ""
    reported: bool = False

    def __post_init__(self):
        if not self.prompt_id:
            self.prompt_id = f"{self.provider}-{int(time.time() * 1000)}"

    @property
    def duration_ms(self) -> int:
        return int((time.monotonic() - self.start) * 1000)

    def response(self, usage: UsageMetadata | None = None) -> None:
        if self.reported:
            return
        self.reported = True
        log_api_response(ApiResponseEvent(
            model=self.model,
            duration_ms=self.duration_ms,
            prompt_id=self.prompt_id,
            auth_type=self.auth_type,
            usage_metadata=usage,
        ))

    def error(self, error: ContentGeneratorError, cause: BaseException | None = None) -> None:
        if self.reported:
            return
        self.reported = True
        log_api_error(ApiErrorEvent(
            model=self.model,
            error=error.message,
            duration_ms=self.duration_ms,
            prompt_id=self.prompt_id,
            auth_type=self.auth_type,
            error_type=type(cause or error).__name__,
            status_code=error.status_code,
        ))
