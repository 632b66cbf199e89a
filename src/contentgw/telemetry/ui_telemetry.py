"""In-process aggregation of API telemetry for display in the terminal UI."""

from __future__ import annotations

from dataclasses import dataclass, field

from contentgw.telemetry.types import ApiErrorEvent, ApiResponseEvent


@dataclass
class ModelMetrics:
    total_requests: int = 0
    total_errors: int = 0
    total_latency_ms: int = 0
    prompt_tokens: int = 0
    candidates_tokens: int = 0
    total_tokens: int = 0

    @property
    def average_latency_ms(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_latency_ms / self.total_requests


@dataclass
class SessionMetrics:
    models: dict[str, ModelMetrics] = field(default_factory=dict)


class UiTelemetryService:
    """Accumulates per-model request, error, latency and token counters."""

    def __init__(self):
        self._metrics = SessionMetrics()
        self._last_prompt_token_count = 0

    def add_event(self, event: ApiResponseEvent | ApiErrorEvent) -> None:
        metrics = self._metrics.models.setdefault(event.model, ModelMetrics())
        metrics.total_requests += 1
        metrics.total_latency_ms += event.duration_ms

        if isinstance(event, ApiErrorEvent) or event.error:
            metrics.total_errors += 1
            return

        metrics.prompt_tokens += event.input_token_count
        metrics.candidates_tokens += event.output_token_count
        metrics.total_tokens += event.total_token_count
        self._last_prompt_token_count = event.input_token_count

    def get_metrics(self) -> SessionMetrics:
        return self._metrics

    def get_last_prompt_token_count(self) -> int:
        return self._last_prompt_token_count

    def reset(self) -> None:
        self._metrics = SessionMetrics()
        self._last_prompt_token_count = 0


ui_telemetry_service = UiTelemetryService()
