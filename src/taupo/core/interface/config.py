"""Model configuration — which LiteLLM model an agent is bound to."""

from typing import Any

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Configuration for a specific model/provider combination.

    The ``model`` field uses LiteLLM's naming convention:
    ``provider/model_name`` (e.g. ``openai/gpt-4o``, ``gemini/gemini-2.5-flash``).
    ``extra`` is forwarded verbatim to every completion call.
    """

    model: str
    api_key: str | None = None
    api_base: str | None = None
    temperature: float | None = None
    extra: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())

    @property
    def provider(self) -> str:
        """Extract the provider prefix from the model string."""
        if "/" in self.model:
            return self.model.split("/", 1)[0]
        return "openai"

    @property
    def model_id(self) -> str:
        """The model name without its provider prefix."""
        return self.model.split("/", 1)[1] if "/" in self.model else self.model

    def completion_kwargs(self) -> dict[str, Any]:
        """Keyword arguments every ``litellm.acompletion`` call gets."""
        kwargs: dict[str, Any] = {"model": self.model, **self.extra}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return kwargs
