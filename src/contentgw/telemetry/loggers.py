"""Emit telemetry events to the log and the UI aggregator."""

from __future__ import annotations

import logging

from contentgw.telemetry.types import ApiErrorEvent, ApiResponseEvent
from contentgw.telemetry.ui_telemetry import ui_telemetry_service

logger = logging.getLogger("contentgw.telemetry")


def log_api_response(event: ApiResponseEvent) -> None:
    """Record a completed (or failed, when ``event.error`` is set) API call."""
    ui_telemetry_service.add_event(event)
    if event.error:
        logger.warning(
            "API response error model=%s prompt_id=%s duration_ms=%d error=%s",
            event.model,
            event.prompt_id,
            event.duration_ms,
            event.error,
            extra={"telemetry": event.to_dict()},
        )
        return
    logger.info(
        "API response model=%s prompt_id=%s duration_ms=%d tokens=%d/%d/%d",
        event.model,
        event.prompt_id,
        event.duration_ms,
        event.input_token_count,
        event.output_token_count,
        event.total_token_count,
        extra={"telemetry": event.to_dict()},
    )


def log_api_error(event: ApiErrorEvent) -> None:
    ui_telemetry_service.add_event(event)
    logger.error(
        "API error model=%s prompt_id=%s duration_ms=%d status=%s error=%s",
        event.model,
        event.prompt_id,
        event.duration_ms,
        event.status_code,
        event.error,
        extra={"telemetry": event.to_dict()},
    )
