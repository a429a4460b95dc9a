"""
Configuration classes for the agent executor.
"""

import logging
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Callable, Optional, Union

from ..agents.exceptions import AgentConfigurationError

logger = logging.getLogger(__name__)

HandleParsingErrors = Union[bool, str, Callable[[Exception], str]]


class VerbosityLevel(IntEnum):
    """Verbosity levels for status output."""
    QUIET = 0     # Minimal output
    NORMAL = 1    # Standard output
    VERBOSE = 2   # Detailed output


@dataclass
class StatusConfig:
    """Configuration for status updates."""
    enabled: bool = False  # Opt-in by default
    verbosity: Optional[VerbosityLevel] = None  # None means use default

    # Output configuration
    cli_output: bool = True
    cli_colors: bool = True
    show_thoughts: bool = True
    show_tool_calls: bool = True
    show_timings: bool = True

    # Observation text longer than this is truncated in CLI output
    max_observation_chars: int = 200

    @classmethod
    def from_verbosity(cls, level: int) -> 'StatusConfig':
        """Create an enabled StatusConfig preset. Unknown levels map to NORMAL."""
        try:
            verbosity = VerbosityLevel(level)
        except ValueError:
            verbosity = VerbosityLevel.NORMAL
        return cls(enabled=True, verbosity=verbosity, **_VERBOSITY_PRESETS[verbosity])

    def should_show_event(self, event_type: str) -> bool:
        """Whether events of ``event_type`` (e.g. "toolcall") pass the verbosity filter."""
        if self.verbosity == VerbosityLevel.QUIET:
            return event_type in ("runend", "runerror")
        if self.verbosity == VerbosityLevel.VERBOSE:
            return True
        return event_type != "agentaction" or self.show_thoughts or self.show_tool_calls


# Display switches per verbosity level
_VERBOSITY_PRESETS = {
    VerbosityLevel.QUIET: dict(cli_colors=False, show_thoughts=False, show_tool_calls=False, show_timings=False),
    VerbosityLevel.NORMAL: dict(show_thoughts=False, show_tool_calls=True, show_timings=True),
    VerbosityLevel.VERBOSE: dict(show_thoughts=True, show_tool_calls=True, show_timings=True),
}


@dataclass
class ExecutorConfig:
    """
    Configuration for an AgentExecutor.

    Attributes:
        max_iterations: Maximum planning cycles before early stopping. None means unbounded.
        max_execution_time: Wall-clock budget in seconds. None means unbounded.
        early_stopping_method: Policy applied when a budget is exhausted. Only "force"
                               is supported; anything else fails when the run stops.
        return_intermediate_steps: Include the full step history in the final outputs
        handle_parsing_errors: False (raise), True (generic observation), a fixed
                               observation string, or a callable error -> str
        max_concurrency: Upper bound on concurrent tool calls within one cycle.
                         None means all actions of a cycle run at once.
        status: CLI status output configuration
    """

    max_iterations: Optional[int] = 15
    max_execution_time: Optional[float] = None
    early_stopping_method: str = "force"
    return_intermediate_steps: bool = False
    handle_parsing_errors: HandleParsingErrors = False
    max_concurrency: Optional[int] = None
    status: StatusConfig = field(default_factory=StatusConfig)

    def __post_init__(self):
        if self.max_iterations is not None and self.max_iterations < 0:
            raise AgentConfigurationError(
                f"max_iterations must be >= 0, got {self.max_iterations}",
                config_field="max_iterations",
                config_value=self.max_iterations,
            )
        if self.max_execution_time is not None and self.max_execution_time < 0:
            raise AgentConfigurationError(
                f"max_execution_time must be >= 0, got {self.max_execution_time}",
                config_field="max_execution_time",
                config_value=self.max_execution_time,
            )
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise AgentConfigurationError(
                f"max_concurrency must be >= 1, got {self.max_concurrency}",
                config_field="max_concurrency",
                config_value=self.max_concurrency,
            )

    @classmethod
    def from_kwargs(cls, **kwargs: Any) -> 'ExecutorConfig':
        """Create config from executor keyword arguments.

        Unknown keys are ignored with a warning. ``verbose`` (bool) and
        ``verbosity`` (int) map onto the status configuration.

        Args:
            **kwargs: Keyword arguments passed to the executor

        Returns:
            ExecutorConfig instance with settings from kwargs
        """
        known = {f.name for f in fields(cls)}
        values = {}

        for key, value in kwargs.items():
            if key in known:
                values[key] = value
            elif key not in ("verbose", "verbosity"):
                logger.warning(f"Ignoring unknown executor option '{key}'")

        if 'status' not in values:
            if 'verbosity' in kwargs:
                values['status'] = StatusConfig.from_verbosity(kwargs['verbosity'])
            elif kwargs.get('verbose'):
                values['status'] = StatusConfig.from_verbosity(VerbosityLevel.VERBOSE)

        return cls(**values)
