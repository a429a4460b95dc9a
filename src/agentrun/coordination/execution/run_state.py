"""
Per-run state owned by exactly one driver call or iterator instance.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ...agents.exceptions import RunStateError
from ...agents.types import AgentStep

if TYPE_CHECKING:
    from ...environment.tools import BaseTool


class LoopState(Enum):
    """Lifecycle of a run."""
    RUNNING = "running"
    STOPPING = "stopping"  # Budget exhausted, early-stop resolution pending
    FINISHED = "finished"


@dataclass
class RunState:
    """
    Mutable state of a single run.

    History is append-only and nothing can be appended once final outputs
    exist. Two runs never share a RunState.
    """
    inputs: Dict[str, Any]
    tool_table: Dict[str, 'BaseTool'] = field(default_factory=dict)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    run_name: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    abort_signal: Optional[asyncio.Event] = None

    iterations: int = 0
    intermediate_steps: List[AgentStep] = field(default_factory=list)
    final_outputs: Optional[Dict[str, Any]] = None
    loop_state: LoopState = LoopState.RUNNING
    started: bool = False
    started_at: Optional[float] = None
    stopped_early: bool = False
    error: Optional[BaseException] = None

    @property
    def finished(self) -> bool:
        return self.loop_state is LoopState.FINISHED

    @property
    def abort_requested(self) -> bool:
        return self.abort_signal is not None and self.abort_signal.is_set()

    def start(self) -> None:
        self.started = True
        self.started_at = time.monotonic()

    def elapsed(self) -> float:
        """Seconds since the first cycle began (0.0 before it)."""
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at

    def append_steps(self, steps: List[AgentStep]) -> None:
        if self.finished:
            raise RunStateError(
                "Cannot append steps to a finished run",
                run_id=self.run_id,
            )
        self.intermediate_steps.extend(steps)

    def finish(self, outputs: Dict[str, Any]) -> None:
        if self.finished:
            raise RunStateError(
                "Run already produced its final outputs",
                run_id=self.run_id,
            )
        self.final_outputs = outputs
        self.loop_state = LoopState.FINISHED
