"""
This package provides the decision-maker interfaces, data types and error
hierarchy shared by the agent execution loop.
"""

from .agents import (
    FORCE_STOP_MESSAGE,
    BaseAgent,
    BaseMultiActionAgent,
    BaseSingleActionAgent,
    RunnableAgent,
)
from .exceptions import (
    AgentConfigurationError,
    AgentFrameworkError,
    FinalOutputsReachedError,
    MissingInputError,
    OutputParserError,
    RunAbortedError,
    RunStateError,
    ToolExecutionError,
    ToolInputParsingError,
)
from .types import AgentAction, AgentFinish, AgentStep

__all__ = [
    # Data types
    "AgentAction",
    "AgentFinish",
    "AgentStep",
    # Agents
    "BaseAgent",
    "BaseSingleActionAgent",
    "BaseMultiActionAgent",
    "RunnableAgent",
    "FORCE_STOP_MESSAGE",
    # Errors
    "AgentFrameworkError",
    "OutputParserError",
    "ToolInputParsingError",
    "ToolExecutionError",
    "AgentConfigurationError",
    "MissingInputError",
    "RunStateError",
    "FinalOutputsReachedError",
    "RunAbortedError",
]
