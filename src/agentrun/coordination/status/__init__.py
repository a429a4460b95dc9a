"""
Status reporting for agent runs: event definitions, channels and the manager
that routes events from the bus to channels.
"""

from .channels import ChannelAdapter, CLIChannel
from .events import (
    AgentActionEvent,
    RunEndEvent,
    RunErrorEvent,
    RunStartEvent,
    StatusEvent,
    ToolCallEvent,
)
from .manager import StatusManager

__all__ = [
    "StatusEvent",
    "RunStartEvent",
    "AgentActionEvent",
    "ToolCallEvent",
    "RunEndEvent",
    "RunErrorEvent",
    "ChannelAdapter",
    "CLIChannel",
    "StatusManager",
]
