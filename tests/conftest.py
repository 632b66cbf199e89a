"""Test fixtures for contentgw."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import httpx
import pytest

from contentgw.core.auth import AuthType
from contentgw.core.config import ContentGeneratorConfig, LoadedSettings, SettingsFile
from contentgw.llm.zhipu_provider import ZhipuContentGenerator
from contentgw.telemetry import ui_telemetry_service

ZHIPU_BASE_URL = "https://zhipu.test/api/paas/v4"


class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered in fixed chunks; records whether it was closed."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def sse_lines(*payloads) -> bytes:
    """Encode payloads as ``data: `` lines; strings are sent verbatim."""
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n")
    return "".join(lines).encode("utf-8")


def delta_chunk(text: str, index: int = 0, finish_reason: str | None = None) -> dict:
    return {
        "id": "chunk-1",
        "model": "glm-4",
        "choices": [{"index": index, "delta": {"content": text}, "finish_reason": finish_reason}],
    }


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self._respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def reset_ui_telemetry():
    ui_telemetry_service.reset()
    yield
    ui_telemetry_service.reset()


@pytest.fixture
def zhipu_config():
    return ContentGeneratorConfig(
        model="glm-4",
        api_key="test-key",
        auth_type=AuthType.USE_ZHIPU,
        base_url=ZHIPU_BASE_URL,
    )


@pytest.fixture
def make_zhipu(zhipu_config):
    """Build a Zhipu generator whose HTTP traffic goes to ``respond``."""

    def _make(respond: Callable[[httpx.Request], httpx.Response]):
        handler = RecordingHandler(respond)
        generator = ZhipuContentGenerator(zhipu_config, transport=httpx.MockTransport(handler))
        return generator, handler

    return _make


@pytest.fixture
def loaded_settings(tmp_path: Path):
    def _make(user: dict | None = None, workspace: dict | None = None) -> LoadedSettings:
        return LoadedSettings(
            user=SettingsFile(path=tmp_path / "user" / "settings.yaml", data=dict(user or {})),
            workspace=SettingsFile(path=tmp_path / "ws" / "settings.yaml", data=dict(workspace or {})),
        )

    return _make
