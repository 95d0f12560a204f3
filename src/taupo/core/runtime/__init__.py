"""Runtime — the model-invocation loop and its result types."""

from taupo.core.runtime.loop import ToolLoopRunner
from taupo.core.runtime.results import GenerationResult, Step, StreamEvent, StreamHandle
from taupo.core.runtime.runner import ModelRunner, RunRequest

__all__ = [
    "GenerationResult",
    "ModelRunner",
    "RunRequest",
    "Step",
    "StreamEvent",
    "StreamHandle",
    "ToolLoopRunner",
]
