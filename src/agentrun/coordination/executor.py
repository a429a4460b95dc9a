"""
AgentExecutor: the public entry point for running an agent with tools.

Example:
    def planner(steps, inputs):
        if steps:
            return AgentFinish({"output": steps[-1].observation})
        return AgentAction(tool="echo", tool_input=inputs["input"])

    executor = AgentExecutor(
        agent=RunnableAgent(planner, input_keys=["input"]),
        tools=[Tool.from_function(lambda text: text, name="echo")],
        max_iterations=5,
    )
    result = await executor.invoke({"input": "hello"})
"""

import asyncio
import dataclasses
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..agents.exceptions import AgentConfigurationError
from .config import ExecutorConfig
from .event_bus import EventBus
from .execution.iterator import AgentExecutorIterator
from .execution.loop_controller import LoopController
from .execution.tool_executor import build_tool_table

if TYPE_CHECKING:
    from ..agents.agents import BaseAgent
    from ..environment.tools import BaseTool

logger = logging.getLogger(__name__)


class AgentExecutor:
    """
    Runs an agent against a set of tools until it finishes or a budget runs out.

    The executor itself holds only read-only configuration. Every call to
    ``invoke``/``run``/``iter``/``stream`` builds its own run state, so several
    runs of one executor may proceed concurrently.
    """

    def __init__(
        self,
        agent: 'BaseAgent',
        tools: Sequence['BaseTool'],
        config: Optional[ExecutorConfig] = None,
        event_bus: Optional[EventBus] = None,
        **kwargs: Any,
    ):
        """
        Initialize the executor.

        Args:
            agent: The decision-maker
            tools: Tools available to the agent
            config: Executor configuration; built from ``kwargs`` when omitted
            event_bus: Optional EventBus for observers. One is created if omitted.
            **kwargs: ExecutorConfig fields (``max_iterations``,
                      ``handle_parsing_errors``, ``verbose``, ...)

        Raises:
            AgentConfigurationError: If a return-direct tool is combined with a
                                     multi-action agent, or tools are invalid
        """
        if config is None:
            config = ExecutorConfig.from_kwargs(**kwargs)
        elif kwargs:
            base = {f.name: getattr(config, f.name) for f in dataclasses.fields(config)}
            if "verbose" in kwargs or "verbosity" in kwargs:
                base.pop("status")
            config = ExecutorConfig.from_kwargs(**{**base, **kwargs})

        self.agent = agent
        self.tools: List['BaseTool'] = list(tools)
        self.config = config

        self._validate_tools()

        self.event_bus = event_bus or EventBus()
        self.status_manager = None
        if config.status.enabled:
            from .status.manager import StatusManager
            from .status.channels import CLIChannel

            self.status_manager = StatusManager(self.event_bus, config.status)
            self.status_manager.add_channel(CLIChannel(config.status))
            logger.info("Status updates enabled with verbosity: %s", config.status.verbosity)

        self.controller = LoopController(self.agent, self.tools, self.config, self.event_bus)

    def _validate_tools(self) -> None:
        build_tool_table(self.tools)

        if self.agent.action_type == "multi":
            for tool in self.tools:
                if tool.return_direct:
                    raise AgentConfigurationError(
                        f"Tool with return direct {tool.name} not supported for multi-action agent.",
                        config_field="tools",
                        config_value=tool.name,
                        agent_name=self.agent.name,
                    )

    @classmethod
    def from_agent_and_tools(
        cls,
        agent: 'BaseAgent',
        tools: Sequence['BaseTool'],
        **kwargs: Any,
    ) -> 'AgentExecutor':
        """Create an executor from an agent and a list of tools."""
        return cls(agent=agent, tools=tools, **kwargs)

    @property
    def input_keys(self) -> List[str]:
        return self.agent.input_keys

    @property
    def output_keys(self) -> List[str]:
        return self.agent.return_values

    async def invoke(
        self,
        inputs: Any,
        abort_signal: Optional[asyncio.Event] = None,
        run_name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run to completion and return the final outputs.

        Args:
            inputs: Run inputs (a mapping, or a bare value for single-input agents)
            abort_signal: When set, the run aborts before its next planning call
            run_name: Optional name reported in status events
            tags: Optional tags reported in status events
            metadata: Optional metadata reported in status events

        Returns:
            The final outputs of the run

        Raises:
            RunAbortedError: If ``abort_signal`` was set during the run
            Any fatal error raised during the run
        """
        state = self.controller.new_state(
            inputs,
            run_name=run_name,
            tags=tags,
            metadata=metadata,
            abort_signal=abort_signal,
        )
        while True:
            outcome = await self.controller.advance(state)
            if outcome.finished:
                return outcome.output

    def run(self, inputs: Any, **kwargs: Any) -> Dict[str, Any]:
        """Blocking wrapper around ``invoke``. Must not be called from a running event loop."""
        return asyncio.run(self.invoke(inputs, **kwargs))

    def iter(
        self,
        inputs: Any,
        abort_signal: Optional[asyncio.Event] = None,
        run_name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentExecutorIterator:
        """Create a step iterator over a new run."""
        return AgentExecutorIterator(
            self.controller,
            inputs,
            run_name=run_name,
            tags=tags,
            metadata=metadata,
            abort_signal=abort_signal,
        )

    async def stream(self, inputs: Any, **kwargs: Any) -> AsyncIterator[Dict[str, Any]]:
        """Yield every non-empty cycle output of a new run, ending with the final outputs."""
        async for output in self.iter(inputs, **kwargs):
            if not output:
                continue
            yield output

    async def shutdown(self) -> None:
        """Detach status output from the event bus."""
        if self.status_manager:
            await self.status_manager.shutdown()
            self.status_manager = None
