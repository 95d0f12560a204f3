"""``taupo agents`` — list and inspect the agents an app serves."""

from __future__ import annotations

import click

from taupo.cli_commands._output import print_agent_tree, print_agents_table, print_json
from taupo.cli_commands._project import load_project, project_options


@click.group()
def agents() -> None:
    """List and inspect agents."""


@agents.command("list")
@project_options
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def list_agents(app_ref: str | None, config_path: str | None, fmt: str) -> None:
    """List all agents the app registers."""
    project = load_project(app_ref, config_path)
    nodes = {key: project.agent(key).describe() for key in project.agents}

    if fmt == "json":
        print_json([{**node.model_dump(mode="json", exclude_none=True), "key": key} for key, node in nodes.items()])
    else:
        print_agents_table(nodes)


@agents.command("inspect")
@click.argument("key")
@project_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def inspect_agent(key: str, app_ref: str | None, config_path: str | None, as_json: bool) -> None:
    """Show the agent tree for KEY (routers include their sub-agents)."""
    project = load_project(app_ref, config_path)
    print_agent_tree(project.agent(key).describe(), as_json=as_json)
