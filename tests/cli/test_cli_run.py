"""Tests for ``taupo run``."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from taupo.cli import main

if TYPE_CHECKING:
    from pathlib import Path


def _response(content: str | None, tool_calls: list[Any] | None = None) -> MagicMock:
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls

    choice = MagicMock()
    choice.message = message
    choice.finish_reason = "tool_calls" if tool_calls else "stop"

    response = MagicMock()
    response.choices = [choice]
    response.model = "gpt-4o"
    response.usage.prompt_tokens = 3
    response.usage.completion_tokens = 2
    response.usage.total_tokens = 5
    return response


def _tool_call(call_id: str, name: str, arguments: dict[str, Any]) -> MagicMock:
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = json.dumps(arguments)
    return call


async def _agen(items: list[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def _text_chunk(text: str | None, finish_reason: str | None = None) -> SimpleNamespace:
    delta = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


class TestRunCommand:
    @patch("taupo.core.interface.client.litellm")
    def test_generate(self, mock_litellm: MagicMock, project_dir: Path) -> None:
        mock_litellm.acompletion = AsyncMock(return_value=_response("Owls hoot at night."))

        result = CliRunner().invoke(main, ["run", "animals", "--prompt", "owls?"])

        assert result.exit_code == 0, result.output
        assert "Owls hoot at night." in result.output
        assert mock_litellm.acompletion.call_args.kwargs["model"] == "openai/gpt-4o-mini"

    @patch("taupo.core.interface.client.litellm")
    def test_router_delegates(self, mock_litellm: MagicMock, project_dir: Path) -> None:
        mock_litellm.acompletion = AsyncMock(
            side_effect=[
                _response(None, [_tool_call("c1", "selectAgent", {"agentId": "Animals"})]),
                _response("Cheetahs are fast."),
            ]
        )

        result = CliRunner().invoke(main, ["run", "facts", "-p", "cheetah?", "--json"])

        assert result.exit_code == 0, result.output
        assert "Cheetahs are fast." in result.output
        models = [call.kwargs["model"] for call in mock_litellm.acompletion.call_args_list]
        assert models == ["openai/gpt-4o", "openai/gpt-4o-mini"]

    @patch("taupo.core.interface.client.litellm")
    def test_stream(self, mock_litellm: MagicMock, project_dir: Path) -> None:
        mock_litellm.acompletion = AsyncMock(
            return_value=_agen([_text_chunk("Owls "), _text_chunk("hoot.", "stop")])
        )

        result = CliRunner().invoke(main, ["run", "animals", "-p", "owls?", "--stream"])

        assert result.exit_code == 0, result.output
        assert "Owls hoot." in result.output

    @patch("taupo.core.interface.client.litellm")
    def test_execution_error(self, mock_litellm: MagicMock, project_dir: Path) -> None:
        mock_litellm.acompletion = AsyncMock(side_effect=RuntimeError("provider down"))

        result = CliRunner().invoke(main, ["run", "animals", "-p", "hi"])

        assert result.exit_code == 1
        assert "Execution error" in result.output

    def test_unknown_agent(self, project_dir: Path) -> None:
        result = CliRunner().invoke(main, ["run", "nope", "-p", "hi"])

        assert result.exit_code == 1
        assert "Unknown agent" in result.output

    def test_prompt_required(self, project_dir: Path) -> None:
        result = CliRunner().invoke(main, ["run", "animals"])
        assert result.exit_code == 2
