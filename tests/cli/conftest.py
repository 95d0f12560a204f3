"""CLI fixtures: a project directory with a taupo.yaml and an agents file."""

from __future__ import annotations

from pathlib import Path

import pytest

APP_SOURCE = '''
from pydantic import BaseModel

from taupo import Agent, AgentEntry, RouterAgent, tool


class FactInput(BaseModel):
    topic: str


@tool(FactInput)
def display_fact(input, options):
    """Display a fact."""
    return input.topic


animals = Agent(
    name="Animals",
    capabilities="Animal facts",
    model="openai/gpt-4o-mini",
    tools={"displayFact": display_fact},
)
router = RouterAgent(name="Facts", model="openai/gpt-4o", sub_agents=[animals])

app = {"facts": router, "animals": AgentEntry(agent=animals, context={"tenant": "cli"})}
'''


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "agents.py").write_text(APP_SOURCE, encoding="utf-8")
    (tmp_path / "taupo.yaml").write_text("app: agents.py:app\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path
