"""
Output channels for status events.
"""

from abc import ABC, abstractmethod
import sys
import time
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .events import StatusEvent
    from ..config import StatusConfig

ANSI_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "red": "\033[31m",
    "gray": "\033[90m",
    "cyan": "\033[36m",
}


class ChannelAdapter(ABC):
    """Base class for output channels."""

    def __init__(self, name: str, enabled: bool = True):
        self.name = name
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled

    @abstractmethod
    async def send(self, event: 'StatusEvent') -> None:
        """Send event to channel."""
        pass

    async def close(self) -> None:
        """Close channel resources."""
        pass


class CLIChannel(ChannelAdapter):
    """
    Terminal output channel with verbosity-aware formatting.
    """

    def __init__(self, config: 'StatusConfig', stream=None):
        super().__init__("cli", config.cli_output)
        self.config = config
        self.stream = stream or sys.stdout
        self.use_colors = config.cli_colors and hasattr(self.stream, "isatty") and self.stream.isatty()

        self.last_agent_name: Optional[str] = None
        self.start_time: float = time.time()

        self.colors = ANSI_COLORS if self.use_colors else dict.fromkeys(ANSI_COLORS, "")

    def _print(self, text: str) -> None:
        print(text, file=self.stream)

    def _truncate(self, value) -> str:
        text = str(value)
        limit = self.config.max_observation_chars
        return text[:limit] + "..." if len(text) > limit else text

    async def send(self, event: 'StatusEvent') -> None:
        """Format and print status event based on verbosity."""
        from .events import (
            RunStartEvent, AgentActionEvent, ToolCallEvent,
            RunEndEvent, RunErrorEvent
        )
        from ..config import VerbosityLevel

        if self.config.show_timings:
            elapsed = time.time() - self.start_time
            timestamp = f"[{elapsed:6.2f}s]"
        else:
            timestamp = ""

        verbosity = self.config.verbosity
        if verbosity is None:
            verbosity = VerbosityLevel.NORMAL

        if isinstance(event, RunStartEvent):
            await self._print_run_start(event, timestamp, verbosity)
        elif isinstance(event, AgentActionEvent):
            await self._print_agent_action(event, timestamp, verbosity)
        elif isinstance(event, ToolCallEvent):
            await self._print_tool_call(event, timestamp, verbosity)
        elif isinstance(event, RunEndEvent):
            await self._print_run_end(event, timestamp, verbosity)
        elif isinstance(event, RunErrorEvent):
            await self._print_run_error(event, timestamp, verbosity)

    async def _print_run_start(self, event, ts: str, verbosity: int):
        """Print run start event."""
        from ..config import VerbosityLevel
        c = self.colors

        if verbosity == VerbosityLevel.QUIET:
            return

        # Reset the clock so timings are relative to this run
        self.start_time = time.time()

        if event.agent_name != self.last_agent_name:
            self._print(f"\n{c['bold']}{c['blue']}━━━ {event.agent_name} ━━━{c['reset']}")
            self.last_agent_name = event.agent_name

        label = f" {event.run_name}" if event.run_name else ""
        self._print(f"  {ts} {c['green']}● Starting run{label}{c['reset']}")

        if verbosity >= VerbosityLevel.VERBOSE and event.inputs:
            self._print(f"    {c['gray']}Inputs: {self._truncate(event.inputs)}{c['reset']}")

    async def _print_agent_action(self, event, ts: str, verbosity: int):
        """Print agent action event."""
        from ..config import VerbosityLevel
        c = self.colors

        if verbosity < VerbosityLevel.NORMAL:
            return

        if self.config.show_thoughts and event.log:
            self._print(f"  {c['dim']}Thinking:{c['reset']} {c['gray']}{self._truncate(event.log)}{c['reset']}")

        if self.config.show_tool_calls:
            self._print(f"  {ts} {c['cyan']}→ Action [{event.iteration}]:{c['reset']} {event.tool}")
            if verbosity >= VerbosityLevel.VERBOSE and event.tool_input is not None:
                self._print(f"    {c['gray']}Input: {self._truncate(event.tool_input)}{c['reset']}")

    async def _print_tool_call(self, event, ts: str, verbosity: int):
        """Print tool call event."""
        from ..config import VerbosityLevel
        if verbosity < VerbosityLevel.NORMAL or not self.config.show_tool_calls:
            return

        c = self.colors

        if event.status == "completed":
            if verbosity >= VerbosityLevel.VERBOSE:
                duration = f" ({event.duration:.2f}s)" if event.duration else ""
                self._print(f"  {ts} {c['green']}✓ {event.tool_name} completed{c['reset']}{duration}")
                if event.observation is not None:
                    self._print(f"    {c['gray']}Observation: {self._truncate(event.observation)}{c['reset']}")
        elif event.status == "failed":
            error = f": {event.error}" if event.error else ""
            self._print(f"  {ts} {c['red']}✗ {event.tool_name} failed{error}{c['reset']}")

    async def _print_run_end(self, event, ts: str, verbosity: int):
        """Print run end event."""
        from ..config import VerbosityLevel
        c = self.colors

        if event.stopped_early:
            self._print(f"\n{c['bold']}{c['yellow']}═══ Run Stopped ═══{c['reset']}")
        else:
            self._print(f"\n{c['bold']}{c['green']}═══ Run Complete ═══{c['reset']}")

        if verbosity >= VerbosityLevel.NORMAL:
            self._print(f"Iterations: {event.iterations}")
            if self.config.show_timings:
                self._print(f"Duration: {event.total_duration:.2f}s")

        if verbosity == VerbosityLevel.VERBOSE:
            self._print(f"\n{c['bold']}Outputs:{c['reset']}")
            for key, value in event.outputs.items():
                if key == "intermediate_steps":
                    continue
                self._print(f"  {key}: {self._truncate(value)}")

    async def _print_run_error(self, event, ts: str, verbosity: int):
        """Print run error event."""
        c = self.colors
        code = f" [{event.error_code}]" if event.error_code else ""
        self._print(f"\n{c['bold']}{c['red']}═══ Run Failed ═══{c['reset']}")
        self._print(f"{c['red']}{event.error_type}{code}: {event.message}{c['reset']}")
