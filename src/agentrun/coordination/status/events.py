"""
Status event definitions for the execution loop.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional
import time
import uuid


@dataclass
class StatusEvent:
    """Base class for all status events."""
    run_id: str  # Required field
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    timestamp: float = field(default_factory=time.time, kw_only=True)
    metadata: Dict[str, Any] = field(default_factory=dict, kw_only=True)

    @property
    def event_type(self) -> str:
        """Get event type for filtering."""
        return self.__class__.__name__.replace("Event", "").lower()


@dataclass
class RunStartEvent(StatusEvent):
    """Run starting, emitted before the first planning call."""
    agent_name: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    run_name: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class AgentActionEvent(StatusEvent):
    """Agent chose an action."""
    agent_name: str
    tool: str
    tool_input: Any = None
    log: str = ""
    iteration: int = 0


@dataclass
class ToolCallEvent(StatusEvent):
    """Tool being called."""
    tool_name: str
    status: Literal["started", "completed", "failed"]
    duration: Optional[float] = None
    observation: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RunEndEvent(StatusEvent):
    """Run produced its final outputs."""
    agent_name: str
    outputs: Dict[str, Any]
    iterations: int
    total_duration: float
    stopped_early: bool = False


@dataclass
class RunErrorEvent(StatusEvent):
    """Run aborted by a fatal error."""
    agent_name: str
    error_type: str
    message: str
    error_code: Optional[str] = None
    iterations: int = 0
