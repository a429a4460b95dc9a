"""
Execution components of the agent loop.

This module contains the loop controller and the pieces it drives: the step
executor, the tool dispatcher, the parsing-error policy, early-stop resolution
and return building, plus the step iterator built on top of them.
"""

from .early_stopping import EarlyStopResolver
from .iterator import AgentExecutorIterator
from .loop_controller import CycleOutcome, LoopController
from .parsing_errors import ParsingErrorPolicy
from .return_builder import INTERMEDIATE_STEPS_KEY, ReturnBuilder
from .run_state import LoopState, RunState
from .step_executor import StepExecutor
from .tool_executor import ToolDispatcher, build_tool_table

__all__ = [
    "AgentExecutorIterator",
    "CycleOutcome",
    "EarlyStopResolver",
    "INTERMEDIATE_STEPS_KEY",
    "LoopController",
    "LoopState",
    "ParsingErrorPolicy",
    "ReturnBuilder",
    "RunState",
    "StepExecutor",
    "ToolDispatcher",
    "build_tool_table",
]
