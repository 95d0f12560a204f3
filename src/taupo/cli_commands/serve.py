"""``taupo serve`` — serve the app's agents over HTTP."""

from __future__ import annotations

import socket
import sys

import click
import uvicorn

from taupo.cli_commands._output import console, err_console
from taupo.cli_commands._project import load_project, project_options

MAX_PORT_ATTEMPTS = 10


def is_port_available(port: int, host: str) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(start: int, host: str, max_attempts: int = MAX_PORT_ATTEMPTS) -> int:
    """Return the first free port in ``[start, start + max_attempts)``.

    Raises:
        OSError: No port in the range is free.
    """
    for port in range(start, start + max_attempts):
        if is_port_available(port, host):
            return port
    msg = f"Could not find an available port after {max_attempts} attempts starting from {start}"
    raise OSError(msg)


@click.command()
@project_options
@click.option("--host", default=None, help="Interface to bind (default from taupo.yaml).")
@click.option("--port", default=None, type=int, help="Port to bind; the next free one is used if taken.")
def serve(app_ref: str | None, config_path: str | None, host: str | None, port: int | None) -> None:
    """Serve every registered agent with uvicorn."""
    from taupo.server.app import create_app

    project = load_project(app_ref, config_path)
    bind_host = host or project.config.server.host
    requested = port or project.config.server.port

    try:
        bind_port = find_available_port(requested, bind_host)
    except OSError as exc:
        err_console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    if bind_port != requested:
        console.print(f"[yellow]Port {requested} is in use, using {bind_port} instead.[/yellow]")

    app = create_app(project.agents)
    console.print(f"[green]Serving {len(project.agents)} agent(s) on http://{bind_host}:{bind_port}[/green]")
    for key in project.agents:
        console.print(f"  /agent/{key}")

    uvicorn.run(app, host=bind_host, port=bind_port, log_level=project.config.log_level.lower())
