"""
agentrun - Agent execution loop

A resumable execution engine that drives an agent: it asks the agent what to
do next, runs the chosen tools, records observations and decides when to stop.

License: Apache-2.0
"""

__version__ = "0.1.0"

# Agents and data types
from .agents import (
    AgentAction,
    AgentFinish,
    AgentStep,
    BaseAgent,
    BaseMultiActionAgent,
    BaseSingleActionAgent,
    RunnableAgent,
)

# Errors
from .agents.exceptions import (
    AgentConfigurationError,
    AgentFrameworkError,
    FinalOutputsReachedError,
    MissingInputError,
    OutputParserError,
    RunAbortedError,
    ToolExecutionError,
    ToolInputParsingError,
)

# Tools
from .environment import BaseTool, ExceptionTool, StructuredTool, Tool

# Execution
from .coordination import (
    AgentExecutor,
    AgentExecutorIterator,
    EventBus,
    ExecutorConfig,
    StatusConfig,
    VerbosityLevel,
)

__all__ = [
    # Version
    "__version__",
    # Data types
    "AgentAction",
    "AgentFinish",
    "AgentStep",
    # Agents
    "BaseAgent",
    "BaseSingleActionAgent",
    "BaseMultiActionAgent",
    "RunnableAgent",
    # Tools
    "BaseTool",
    "Tool",
    "StructuredTool",
    "ExceptionTool",
    # Execution
    "AgentExecutor",
    "AgentExecutorIterator",
    "ExecutorConfig",
    "StatusConfig",
    "VerbosityLevel",
    "EventBus",
    # Errors
    "AgentFrameworkError",
    "OutputParserError",
    "ToolInputParsingError",
    "ToolExecutionError",
    "AgentConfigurationError",
    "MissingInputError",
    "FinalOutputsReachedError",
    "RunAbortedError",
]
