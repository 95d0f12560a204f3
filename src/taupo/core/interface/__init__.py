"""Model interface — canonical messages, LiteLLM client, OpenAI wire format."""

from taupo.core.interface.client import CompletionChunk, ModelClient
from taupo.core.interface.config import ModelConfig
from taupo.core.interface.models import (
    CanonicalMessage,
    ContentPart,
    ConversationHistory,
    ImageContent,
    TextContent,
    ToolCall,
    ToolResult,
    coerce_messages,
)
from taupo.core.interface.transpiler import OpenAITranspiler

__all__ = [
    "CanonicalMessage",
    "CompletionChunk",
    "ContentPart",
    "ConversationHistory",
    "ImageContent",
    "ModelClient",
    "ModelConfig",
    "OpenAITranspiler",
    "TextContent",
    "ToolCall",
    "ToolResult",
    "coerce_messages",
]
