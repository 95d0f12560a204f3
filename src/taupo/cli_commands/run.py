"""``taupo run`` — run one agent from the command line."""

from __future__ import annotations

import asyncio
import sys

import click

from taupo.cli_commands._output import console, err_console, print_result
from taupo.cli_commands._project import load_project, project_options
from taupo.core.writer import BufferWriter
from taupo.errors import TaupoError


@click.command()
@click.argument("key")
@click.option("--prompt", "-p", required=True, help="Prompt to send to the agent.")
@click.option("--stream", "stream_output", is_flag=True, help="Print text as it is generated.")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON.")
@project_options
def run(
    key: str,
    prompt: str,
    stream_output: bool,
    as_json: bool,
    app_ref: str | None,
    config_path: str | None,
) -> None:
    """Send PROMPT to the agent registered as KEY."""
    project = load_project(app_ref, config_path)
    entry = project.agents.get(key)
    agent = project.agent(key)
    context = getattr(entry, "context", None)
    # Request-scoped contexts need an HTTP request.
    if callable(context):
        context = None

    writer = BufferWriter()

    async def _generate() -> None:
        result = await agent.generate(prompt=prompt, context=context, writer=writer)
        print_result(result, as_json=as_json)

    async def _stream() -> None:
        handle = await agent.stream(prompt=prompt, context=context, writer=writer)
        async for delta in handle.text_stream():
            console.print(delta, end="", soft_wrap=True, highlight=False)
        console.print()

    try:
        asyncio.run(_stream() if stream_output else _generate())
    except TaupoError as exc:
        err_console.print(f"[red]Execution error:[/red] {exc}")
        sys.exit(1)

    for event in writer.events:
        err_console.print(f"[dim]{event.get('type')}: {event.get('data')}[/dim]")
