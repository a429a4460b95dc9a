"""
Core data types exchanged between agents, tools and the execution loop.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class AgentAction:
    """A tool invocation requested by an agent."""
    tool: str
    tool_input: Any
    log: str = ""


@dataclass(frozen=True)
class AgentFinish:
    """Terminal value produced by an agent, declaring the run complete."""
    return_values: Dict[str, Any] = field(default_factory=dict)
    log: str = ""


@dataclass(frozen=True)
class AgentStep:
    """One (action, observation) pair in the execution history."""
    action: AgentAction
    observation: Any = ""
