"""Agent endpoints.

- ``GET /agents``: every registered agent's tree plus its URL key
- ``GET /agent/{name}/metadata``: one agent's tree
- ``POST /agent/{name}/generate``: run to completion, JSON result
- ``POST /agent/{name}/stream``: raw stream events as SSE
- ``POST /agent/{name}/chat``: UI message stream as SSE
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from taupo.core.agent.models import CallParameters
from taupo.core.agent.ui_stream import create_agent_ui_stream
from taupo.errors import InvalidCallError, TaupoError
from taupo.server.errors import agent_execution_failed, agent_not_found, invalid_request_body, to_http_error
from taupo.server.streaming import UI_MESSAGE_STREAM_HEADERS, stream_events_sse, ui_message_sse

if TYPE_CHECKING:
    from taupo.server.app import AgentEntry

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_entry(request: Request, name: str) -> AgentEntry:
    entries: dict[str, AgentEntry] = request.app.state.agents
    entry = entries.get(name)
    if entry is None:
        raise agent_not_found(name)
    return entry


async def _read_body(request: Request) -> dict[str, Any]:
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise invalid_request_body("Invalid JSON in request body") from exc
    if not isinstance(body, dict):
        raise invalid_request_body("Request body must be a JSON object")
    return body


def _call_parameters(body: dict[str, Any], context: Any) -> CallParameters:
    if not body.get("prompt") and not body.get("messages"):
        raise invalid_request_body('Request must include either "prompt" or "messages" field')
    return CallParameters(
        prompt=body.get("prompt"),
        messages=body.get("messages"),
        options=body.get("options"),
        context=context,
        max_messages_in_context=body.get("maxMessagesInContext"),
    )


@router.get("/agents")
async def list_agents(request: Request) -> dict[str, Any]:
    entries: dict[str, AgentEntry] = request.app.state.agents
    return {
        "agents": [
            {**entry.agent.describe().model_dump(mode="json", exclude_none=True), "key": key}
            for key, entry in entries.items()
        ]
    }


@router.get("/agent/{name}/metadata")
async def agent_metadata(name: str, request: Request) -> dict[str, Any]:
    entry = _get_entry(request, name)
    return entry.agent.describe().model_dump(mode="json", exclude_none=True)


@router.post("/agent/{name}/generate")
async def agent_generate(name: str, request: Request) -> dict[str, Any]:
    entry = _get_entry(request, name)
    body = await _read_body(request)
    params = _call_parameters(body, entry.resolve_context(request))

    logger.info("Generating with agent %r", name)
    try:
        result = await entry.agent.generate(params)
    except TaupoError as exc:
        raise to_http_error(exc) from exc
    return result.model_dump(mode="json")


@router.post("/agent/{name}/stream")
async def agent_stream(name: str, request: Request) -> StreamingResponse:
    entry = _get_entry(request, name)
    body = await _read_body(request)
    params = _call_parameters(body, entry.resolve_context(request))

    logger.info("Streaming agent %r", name)
    try:
        handle = await entry.agent.stream(params)
    except TaupoError as exc:
        raise to_http_error(exc) from exc
    return StreamingResponse(stream_events_sse(handle), media_type="text/event-stream")


@router.post("/agent/{name}/chat")
async def agent_chat(name: str, request: Request) -> StreamingResponse:
    entry = _get_entry(request, name)
    body = await _read_body(request)
    messages = body.get("messages")
    if not isinstance(messages, list):
        raise invalid_request_body('Request must include "messages" array')

    logger.info("Chat with agent %r", name)
    try:
        chunks = await create_agent_ui_stream(
            entry.agent,
            messages,
            context=entry.resolve_context(request),
            max_messages_in_context=body.get("maxMessagesInContext"),
            on_error=entry.on_error,
        )
    except InvalidCallError as exc:
        raise invalid_request_body(str(exc)) from exc
    except TaupoError as exc:
        raise agent_execution_failed(exc) from exc
    return StreamingResponse(
        ui_message_sse(chunks),
        media_type="text/event-stream",
        headers=UI_MESSAGE_STREAM_HEADERS,
    )
