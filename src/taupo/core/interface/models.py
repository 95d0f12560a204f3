"""Canonical message schema — the one message format the engine speaks.

Callers may hand in OpenAI-style dicts (``{"role": "user", "content": "hi"}``);
they are coerced into :class:`CanonicalMessage` on validation.  The
transpiler converts back to the provider wire format right before LiteLLM.
"""

from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Image content part (URL or data URL)."""

    type: Literal["image"] = "image"
    url: str
    media_type: str | None = None


ContentPart = TextContent | ImageContent


# ---------------------------------------------------------------------------
# Tool calling
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    name: str
    arguments: dict[str, Any] = {}


class ToolResult(BaseModel):
    """Outcome of one tool call.

    ``output`` is whatever ``execute`` returned; ``content`` is the text the
    model sees on the next step.
    """

    tool_call_id: str
    tool_name: str = ""
    input: dict[str, Any] = {}
    output: Any = None
    is_error: bool = False
    content: list[ContentPart] = []

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.content if isinstance(part, TextContent))

    @classmethod
    def from_text(cls, tool_call_id: str, text: str, **fields: Any) -> "ToolResult":
        """Create a ToolResult whose model-facing content is *text*."""
        parts: list[ContentPart] = [TextContent(text=text)]
        return cls(tool_call_id=tool_call_id, content=parts, **fields)


# ---------------------------------------------------------------------------
# Canonical message
# ---------------------------------------------------------------------------


class CanonicalMessage(BaseModel):
    """A single conversation message.

    Roles:
    - system: instructions
    - user: human input
    - assistant: model output (may include tool_calls)
    - tool: tool results (must include tool_call_id)
    """

    role: Literal["system", "user", "assistant", "tool"]
    content: list[ContentPart] = []
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    metadata: dict[str, Any] = {}

    @model_validator(mode="before")
    @classmethod
    def _coerce_string_content(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("content"), str):
            text: str = data["content"]
            data = {**data, "content": [{"type": "text", "text": text}] if text else []}
        return data

    @property
    def text(self) -> str:
        """Concatenated text of all TextContent parts."""
        return "".join(part.text for part in self.content if isinstance(part, TextContent))

    @classmethod
    def system(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        parts: list[ContentPart] = [TextContent(text=text)]
        return cls(role="system", content=parts, metadata=metadata)

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "CanonicalMessage":
        parts: list[ContentPart] = [TextContent(text=text)]
        return cls(role="user", content=parts, metadata=metadata)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_calls: list[ToolCall] | None = None,
        **metadata: Any,
    ) -> "CanonicalMessage":
        content: list[ContentPart] = [TextContent(text=text)] if text else []
        return cls(role="assistant", content=content, tool_calls=tool_calls, metadata=metadata)

    @classmethod
    def tool(cls, result: ToolResult, **metadata: Any) -> "CanonicalMessage":
        return cls(
            role="tool",
            content=list(result.content),
            tool_call_id=result.tool_call_id,
            metadata=metadata,
        )


def coerce_messages(messages: list[Any]) -> list[CanonicalMessage]:
    """Validate a list of messages or OpenAI-style dicts into canonical form."""
    return [m if isinstance(m, CanonicalMessage) else CanonicalMessage.model_validate(m) for m in messages]


# ---------------------------------------------------------------------------
# Conversation history
# ---------------------------------------------------------------------------


class ConversationHistory(BaseModel):
    """An ordered sequence of canonical messages."""

    messages: list[CanonicalMessage] = []

    def append(self, message: CanonicalMessage) -> None:
        self.messages.append(message)

    def extend(self, messages: list[CanonicalMessage]) -> None:
        self.messages.extend(messages)

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        return iter(self.messages)
