"""OpenAI transpiler — canonical messages to the chat-completions format.

LiteLLM accepts OpenAI-style messages for every provider and adapts them
internally, so this is the only wire format the engine needs.
"""

import json
from typing import Any

from taupo.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    ImageContent,
    TextContent,
    ToolCall,
)


class OpenAITranspiler:
    """Converts between canonical messages and OpenAI's chat format."""

    def to_provider(self, history: ConversationHistory) -> list[dict[str, Any]]:
        """Convert a history into a list of OpenAI message dicts."""
        return [self._message_to_openai(msg) for msg in history]

    def from_provider(self, message: dict[str, Any]) -> CanonicalMessage:
        """Convert one OpenAI message dict back into canonical form."""
        role = message.get("role", "assistant")
        if role == "tool":
            return CanonicalMessage(
                role="tool",
                content=[TextContent(text=str(message.get("content") or ""))],
                tool_call_id=message.get("tool_call_id"),
            )

        tool_calls: list[ToolCall] | None = None
        if message.get("tool_calls"):
            tool_calls = [
                ToolCall(
                    id=tc["id"],
                    name=tc["function"]["name"],
                    arguments=parse_arguments(tc["function"].get("arguments", "{}")),
                )
                for tc in message["tool_calls"]
            ]
        return CanonicalMessage(
            role=role,
            content=message.get("content") or [],
            tool_calls=tool_calls,
        )

    def _message_to_openai(self, msg: CanonicalMessage) -> dict[str, Any]:
        result: dict[str, Any] = {"role": msg.role}

        if msg.role == "tool":
            result["tool_call_id"] = msg.tool_call_id
            result["content"] = msg.text
            return result

        if all(isinstance(p, TextContent) for p in msg.content):
            result["content"] = msg.text or None
        else:
            result["content"] = [self._content_part_to_openai(p) for p in msg.content]

        if msg.tool_calls:
            result["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments),
                    },
                }
                for tc in msg.tool_calls
            ]

        return result

    def _content_part_to_openai(self, part: ContentPart) -> dict[str, Any]:
        if isinstance(part, TextContent):
            return {"type": "text", "text": part.text}
        image: ImageContent = part
        return {"type": "image_url", "image_url": {"url": image.url}}


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """Parse JSON tool-call arguments, keeping unparseable input under ``raw``."""
    if not raw:
        return {}
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {"raw": raw}
    if not isinstance(result, dict):
        return {"raw": raw}
    return result
