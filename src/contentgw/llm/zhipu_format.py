"""Conversion between generic contents and the Zhipu chat-completion JSON.

Zhipu messages carry either a plain string or a list of tagged items:

    {"type": "text", "text": "..."}
    {"type": "function_call", "function_call": {"id", "name", "arguments"}}
    {"type": "function_response", "function_response": {"id", "name", "content"}}

Responses wrap choices that hold a full ``message`` (non-streaming) or a
``delta`` (streaming), plus optional ``usage`` and top-level ``tool_calls``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from contentgw.llm.types import (
    Candidate,
    Content,
    FinishReason,
    FunctionCallPart,
    FunctionResponsePart,
    GenerateContentResponse,
    Part,
    TextPart,
    Tool,
    UsageMetadata,
    normalize_contents,
)

logger = logging.getLogger(__name__)

_ROLE_TO_VENDOR = {"user": "user", "model": "assistant"}

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "length": FinishReason.MAX_TOKENS,
    "content_filter": FinishReason.SAFETY,
}


def to_vendor_role(role: str | None) -> str:
    return _ROLE_TO_VENDOR.get(role or "", "system")


def to_vendor_messages(contents) -> list[dict]:
    """Flatten generic contents into Zhipu messages, preserving order.

    Consecutive text parts of one content become a single plain-text message.
    Each function call and function result becomes its own message.
    """
    messages: list[dict] = []
    for content in normalize_contents(contents):
        role = to_vendor_role(content.role)
        if not content.parts:
            messages.append({"role": role, "content": ""})
            continue

        text_buffer: list[str] = []

        def flush_text() -> None:
            if text_buffer:
                messages.append({"role": role, "content": "".join(text_buffer)})
                text_buffer.clear()

        for part in content.parts:
            if isinstance(part, TextPart):
                text_buffer.append(part.text)
            elif isinstance(part, FunctionCallPart):
                flush_text()
                messages.append({"role": role, "content": [_function_call_item(part)]})
            elif isinstance(part, FunctionResponsePart):
                flush_text()
                messages.append({"role": role, "content": [_function_response_item(part)]})
            else:
                logger.warning("Coercing unknown part kind %s to text", type(part).__name__)
                text_buffer.append(part if isinstance(part, str) else str(part))
        flush_text()
    return messages


def _function_call_item(part: FunctionCallPart) -> dict:
    call: dict[str, Any] = {
        "name": part.name,
        "arguments": json.dumps(part.args or {}, ensure_ascii=False),
    }
    if part.id is not None:
        call["id"] = part.id
    return {"type": "function_call", "function_call": call}


def _function_response_item(part: FunctionResponsePart) -> dict:
    response: dict[str, Any] = {
        "name": part.name,
        "content": json.dumps(part.response or {}, ensure_ascii=False),
    }
    if part.id is not None:
        response["id"] = part.id
    return {"type": "function_response", "function_response": response}


def to_vendor_tools(tools: list[Tool] | None) -> list[dict]:
    """Convert tool declarations into Zhipu function tools."""
    result = []
    for tool in tools or []:
        for decl in tool.function_declarations:
            logger.debug("Adding tool: %s", decl.name)
            result.append({
                "type": "function",
                "function": {
                    "name": decl.name,
                    "description": decl.description or "",
                    "parameters": decl.parameters if decl.parameters is not None else {},
                },
            })
    return result


def build_chat_request(model: str, contents, tools: list[Tool] | None, stream: bool) -> dict:
    body: dict = {
        "model": model,
        "messages": to_vendor_messages(contents),
        "stream": stream,
    }
    vendor_tools = to_vendor_tools(tools)
    if vendor_tools:
        body["tools"] = vendor_tools
    return body


def map_finish_reason(reason: str | None) -> FinishReason | None:
    """Map a vendor finish reason. Unknown strings map to UNSPECIFIED."""
    if reason is None:
        return None
    return _FINISH_REASONS.get(reason, FinishReason.FINISH_REASON_UNSPECIFIED)


def map_usage(usage: dict | None) -> UsageMetadata | None:
    if not usage:
        return None
    return UsageMetadata(
        prompt_token_count=usage.get("prompt_tokens", 0),
        candidates_token_count=usage.get("completion_tokens", 0),
        total_token_count=usage.get("total_tokens", 0),
    )


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Parse tool-call arguments; anything unparsable degrades to ``{}``."""
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning("Error parsing tool call arguments %r: %s", raw, e)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Tool call arguments are not an object: %r", raw)
        return {}
    return parsed


def _parse_response_content(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {"content": raw}
        return parsed if isinstance(parsed, dict) else {"content": parsed}
    return {"content": raw}


def parts_from_vendor_content(content: Any) -> list[Part]:
    """Map a message/delta ``content`` field to generic parts."""
    if content is None:
        return []
    if isinstance(content, str):
        return [TextPart(text=content)] if content else []
    if not isinstance(content, list):
        return [TextPart(text=str(content))]

    parts: list[Part] = []
    for item in content:
        kind = item.get("type") if isinstance(item, dict) else None
        if kind == "text":
            parts.append(TextPart(text=item.get("text") or ""))
        elif kind == "function_call":
            call = item.get("function_call") or {}
            parts.append(FunctionCallPart(
                name=call.get("name", ""),
                args=parse_arguments(call.get("arguments")),
                id=call.get("id"),
            ))
        elif kind == "function_response":
            resp = item.get("function_response") or {}
            parts.append(FunctionResponsePart(
                name=resp.get("name", ""),
                response=_parse_response_content(resp.get("content", resp.get("response"))),
                id=resp.get("id"),
            ))
        else:
            text = item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
            parts.append(TextPart(text=text))
    return parts


def parts_from_tool_calls(tool_calls: list[dict] | None) -> list[Part]:
    parts: list[Part] = []
    for tc in tool_calls or []:
        func = tc.get("function") or {}
        parts.append(FunctionCallPart(
            name=func.get("name", ""),
            args=parse_arguments(func.get("arguments")),
            id=tc.get("id"),
        ))
    return parts


def from_vendor_response(data: dict, streaming: bool = False) -> GenerateContentResponse:
    """Build a generic response from a full response or a streamed fragment.

    Streamed fragments read each choice's ``delta`` (falling back to
    ``message``) and do not pick up top-level ``tool_calls``.
    """
    top_level_calls = [] if streaming else parts_from_tool_calls(data.get("tool_calls"))
    if top_level_calls:
        logger.debug("Received %d tool calls from API", len(top_level_calls))

    candidates = []
    for position, choice in enumerate(data.get("choices") or []):
        if streaming:
            body = choice.get("delta") or choice.get("message") or {}
        else:
            body = choice.get("message") or {}
        parts = parts_from_vendor_content(body.get("content"))
        if not streaming:
            parts.extend(parts_from_tool_calls(body.get("tool_calls")))
            parts.extend(top_level_calls)
        if not parts:
            parts = [TextPart(text="")]
        candidates.append(Candidate(
            index=choice.get("index", position),
            content=Content(role="model", parts=parts),
            finish_reason=map_finish_reason(choice.get("finish_reason")),
        ))

    return GenerateContentResponse(
        response_id=data.get("id"),
        model_version=data.get("model"),
        candidates=candidates,
        usage_metadata=map_usage(data.get("usage")),
    )


def to_embedding_input(contents) -> str | list[str]:
    """Flatten embedding contents into the vendor ``input`` field."""
    if isinstance(contents, list):
        return [_embedding_text(item) for item in contents]
    return _embedding_text(contents)


def _embedding_text(item) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Content):
        return "".join(p.text for p in item.parts if isinstance(p, TextPart))
    return ""
