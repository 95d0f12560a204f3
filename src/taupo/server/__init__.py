"""HTTP boundary — FastAPI routes for listing, inspecting and running agents."""

from taupo.server.app import AgentEntry, create_app
from taupo.server.errors import ErrorResponse, HTTPError

__all__ = ["AgentEntry", "ErrorResponse", "HTTPError", "create_app"]
