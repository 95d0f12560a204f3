"""Shared CLI output formatters."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from taupo.core.agent.models import AgentInfoNode
    from taupo.core.runtime.results import GenerationResult

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: int | str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def print_agents_table(nodes: dict[str, AgentInfoNode]) -> None:
    """Pretty-print registered agents as a table."""
    table = Table(title="Agents")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Model")
    table.add_column("Capabilities")
    table.add_column("Tools / Sub-agents")

    for key, node in nodes.items():
        if node.sub_agents is not None:
            children = ", ".join(sub.name for sub in node.sub_agents)
        else:
            children = ", ".join(node.tools or []) or "-"
        table.add_row(
            key,
            node.name,
            node.type,
            node.model_id or "-",
            _truncate(node.capabilities),
            _truncate(children),
        )

    console.print(table)


def agent_tree(node: AgentInfoNode, tree: Tree | None = None) -> Tree:
    """Build a rich tree for *node* and its descendants."""
    style = "bold magenta" if node.type == "router" else "bold cyan"
    label = f"[{style}]{node.name}[/{style}] [dim]({node.type}, {node.model_id or '-'})[/dim]"
    branch = Tree(label) if tree is None else tree.add(label)
    branch.add(f"[italic]{node.capabilities}[/italic]")
    if node.tools:
        tools = branch.add("[green]tools[/green]")
        for name in node.tools:
            tools.add(name)
    for sub in node.sub_agents or []:
        agent_tree(sub, branch)
    return branch


def print_agent_tree(node: AgentInfoNode, *, as_json: bool = False) -> None:
    if as_json:
        console.print_json(node.model_dump_json(exclude_none=True))
        return
    console.print(agent_tree(node))


def print_result(result: GenerationResult, *, as_json: bool = False) -> None:
    """Print the final text, then a short step trace."""
    if as_json:
        console.print_json(result.model_dump_json())
        return

    console.print(result.text)
    if len(result.steps) > 1 or any(step.tool_calls for step in result.steps):
        console.print("\n[bold]Steps:[/bold]")
        for index, step in enumerate(result.steps, start=1):
            calls = ", ".join(call.name for call in step.tool_calls) or "-"
            console.print(f"  {index}. tools: {calls}  finish: {step.finish_reason or '-'}")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
