"""Tool-call context envelope.

The caller's context is an open value the engine never inspects.  The
writer travels next to it in a separate field rather than merged into it,
so a tool author's context type never grows a ``writer`` key and a
caller's own ``writer`` key can never be clobbered.  :meth:`CallContext.unwrap`
is the single point where the two are split apart again, right before a
tool's ``execute`` runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from taupo.core.writer import Writer


@dataclass(frozen=True)
class CallContext:
    """``{user_context, writer}`` for a single in-flight call."""

    user_context: Any = None
    writer: Writer | None = None

    def unwrap(self) -> tuple[Any, Writer | None]:
        return self.user_context, self.writer
