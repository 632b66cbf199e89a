"""Telemetry events for content generator calls."""

from contentgw.telemetry.loggers import log_api_error, log_api_response
from contentgw.telemetry.types import ApiErrorEvent, ApiResponseEvent, TelemetryEventName
from contentgw.telemetry.ui_telemetry import UiTelemetryService, ui_telemetry_service

__all__ = [
    "ApiErrorEvent",
    "ApiResponseEvent",
    "TelemetryEventName",
    "UiTelemetryService",
    "log_api_error",
    "log_api_response",
    "ui_telemetry_service",
]
