"""
Coordination layer: the executor, its configuration, and observability.
"""

from .config import ExecutorConfig, StatusConfig, VerbosityLevel
from .event_bus import ALL_EVENTS, EventBus
from .execution import AgentExecutorIterator, INTERMEDIATE_STEPS_KEY, LoopState
from .executor import AgentExecutor

__all__ = [
    "AgentExecutor",
    "AgentExecutorIterator",
    "ExecutorConfig",
    "StatusConfig",
    "VerbosityLevel",
    "EventBus",
    "ALL_EVENTS",
    "INTERMEDIATE_STEPS_KEY",
    "LoopState",
]
