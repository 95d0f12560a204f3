"""Server-Sent Events framing for agent streams."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from taupo.core.runtime.results import StreamHandle

logger = logging.getLogger(__name__)

UI_MESSAGE_STREAM_HEADERS = {
    "cache-control": "no-cache",
    "connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
    "x-accel-buffering": "no",
}


def format_sse(data: Any, event: str | None = None) -> str:
    """Frame one SSE message; *data* is JSON-encoded unless already a string."""
    payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False, default=str)
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in payload.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


async def stream_events_sse(handle: StreamHandle) -> AsyncIterator[str]:
    """One SSE message per stream event, named after the event type.

    A failure mid-stream becomes a final ``error`` event; the HTTP status
    is already sent by then.
    """
    try:
        async for event in handle:
            yield format_sse(event.model_dump(mode="json", exclude_none=True), event=event.type)
    except Exception as exc:
        logger.error("Agent stream failed: %s", exc, exc_info=exc)
        yield format_sse({"type": "error", "error": str(exc) or "Unknown error"}, event="error")


async def ui_message_sse(chunks: AsyncIterator[dict[str, Any]]) -> AsyncIterator[str]:
    """Frame UI message chunks as ``data:`` lines, ending with ``[DONE]``."""
    async for chunk in chunks:
        yield format_sse(chunk)
    yield format_sse("[DONE]")
