"""Writers — the per-call, append-only output sink.

A writer is created by the outermost caller (usually the HTTP boundary),
handed down through every delegation hop and into tool execution, and
never owned by an agent.  Writes are delivered in the order they are
issued; nothing is batched or reordered.

Events are plain dicts in the UI message stream shape, e.g.
``{"type": "data-status", "data": {"text": "Working..."}}``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

STATUS_EVENT = "data-status"


def status_event(text: str) -> dict[str, Any]:
    return {"type": STATUS_EVENT, "data": {"text": text}}


@runtime_checkable
class Writer(Protocol):
    """Anything tools and routers can report progress to."""

    def write(self, event: dict[str, Any]) -> None:
        """Append an arbitrary typed event."""
        ...

    def status(self, text: str) -> None:
        """Append a ``data-status`` event carrying *text*."""
        ...


class BufferWriter:
    """Collects events in memory, e.g. for non-streaming calls."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def write(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def status(self, text: str) -> None:
        self.write(status_event(text))


class QueueWriter:
    """Feeds events into an :class:`asyncio.Queue` drained by a stream consumer.

    ``None`` is reserved as the end-of-stream sentinel, see :meth:`close`.
    """

    def __init__(self, queue: asyncio.Queue[dict[str, Any] | None] | None = None) -> None:
        self.queue: asyncio.Queue[dict[str, Any] | None] = queue or asyncio.Queue()
        self._closed = False

    def write(self, event: dict[str, Any]) -> None:
        if self._closed:
            msg = "Cannot write to a closed writer"
            raise RuntimeError(msg)
        self.queue.put_nowait(event)

    def status(self, text: str) -> None:
        self.write(status_event(text))

    def close(self) -> None:
        """Signal the consumer that no more events will follow."""
        if not self._closed:
            self._closed = True
            self.queue.put_nowait(None)
