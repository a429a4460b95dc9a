"""
Tool dispatcher for the execution loop.

Resolves each action's tool by case-insensitive name, invokes it and records
the observation. Unknown tools and recoverable input parsing errors become
observations; tool execution errors propagate and abort the run.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from ...agents.exceptions import AgentConfigurationError, ToolInputParsingError
from ...agents.types import AgentAction, AgentStep
from ...environment.tools import EXCEPTION_TOOL_NAME, BaseTool, ExceptionTool
from .parsing_errors import ParsingErrorPolicy

if TYPE_CHECKING:
    from ..event_bus import EventBus
    from .run_state import RunState

logger = logging.getLogger(__name__)


def build_tool_table(tools: Iterable[BaseTool]) -> Dict[str, BaseTool]:
    """
    Map lower-cased tool names to tools, preserving configured order.

    Raises:
        AgentConfigurationError: On duplicate names or use of the reserved name
    """
    table: Dict[str, BaseTool] = {}
    for tool in tools:
        key = tool.name.lower()
        if key == EXCEPTION_TOOL_NAME.lower():
            raise AgentConfigurationError(
                f"Tool name '{tool.name}' is reserved for exception reporting",
                config_field="tools",
                config_value=tool.name,
            )
        if key in table:
            raise AgentConfigurationError(
                f"Duplicate tool name '{tool.name}' (names are case-insensitive)",
                config_field="tools",
                config_value=tool.name,
            )
        table[key] = tool
    return table


def invalid_tool_observation(tool_name: Any, tool_table: Dict[str, BaseTool]) -> str:
    valid_names = ", ".join(tool.name for tool in tool_table.values())
    return f"{tool_name} is not a valid tool, try another available tool: {valid_names}"


class ToolDispatcher:
    """Executes the actions of one planning cycle against a tool table."""

    def __init__(
        self,
        policy: ParsingErrorPolicy,
        event_bus: Optional['EventBus'] = None,
        max_concurrency: Optional[int] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            policy: Parsing-error policy applied to tool input errors
            event_bus: Optional EventBus for emitting tool call events
            max_concurrency: Upper bound on concurrent tool calls per cycle
        """
        self.policy = policy
        self.event_bus = event_bus
        self.max_concurrency = max_concurrency
        self.exception_tool = ExceptionTool()

    def resolve(self, tool_name: Any, tool_table: Dict[str, BaseTool]) -> Optional[BaseTool]:
        if tool_name == EXCEPTION_TOOL_NAME:
            return self.exception_tool
        if not isinstance(tool_name, str):
            return None
        return tool_table.get(tool_name.lower())

    async def dispatch(
        self,
        action: AgentAction,
        tool_table: Dict[str, BaseTool],
        state: 'RunState',
    ) -> AgentStep:
        """
        Execute one action.

        Returns:
            The resulting step

        Raises:
            ToolInputParsingError: If input parsing fails and the policy is disabled
            ToolExecutionError: If the tool implementation fails
        """
        tool = self.resolve(action.tool, tool_table)

        if tool is None:
            logger.warning(f"Agent requested unknown tool '{action.tool}'")
            return AgentStep(action=action, observation=invalid_tool_observation(action.tool, tool_table))

        start_time = time.time()
        await self._emit(state, tool.name, "started")

        try:
            observation = await tool.call(action.tool_input)
        except ToolInputParsingError as e:
            if not self.policy.enabled:
                await self._emit(state, tool.name, "failed", start_time, error=str(e))
                raise
            logger.warning(f"Recovered from tool input parsing error in {tool.name}: {e}")
            observation = await self.exception_tool.call(self.policy.recover_tool_input_error(e))
        except Exception as e:
            await self._emit(state, tool.name, "failed", start_time, error=str(e))
            raise

        logger.debug(f"Tool {tool.name} executed successfully")
        await self._emit(state, tool.name, "completed", start_time, observation=observation)
        return AgentStep(action=action, observation=observation)

    async def dispatch_many(
        self,
        actions: List[AgentAction],
        tool_table: Dict[str, BaseTool],
        state: 'RunState',
    ) -> List[AgentStep]:
        """
        Execute all actions of a cycle, concurrently when there are several.

        Every invocation is awaited before returning. Steps keep the order of
        ``actions``; if any invocation failed, the first failure in action
        order is raised.
        """
        if len(actions) == 1:
            return [await self.dispatch(actions[0], tool_table, state)]

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def run_one(action: AgentAction) -> AgentStep:
            if semaphore is None:
                return await self.dispatch(action, tool_table, state)
            async with semaphore:
                return await self.dispatch(action, tool_table, state)

        logger.info(f"Dispatching {len(actions)} tool calls concurrently")
        results = await asyncio.gather(*(run_one(action) for action in actions), return_exceptions=True)

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    async def _emit(
        self,
        state: 'RunState',
        tool_name: str,
        status: str,
        start_time: Optional[float] = None,
        observation: Any = None,
        error: Optional[str] = None,
    ) -> None:
        if not self.event_bus:
            return
        from ..status.events import ToolCallEvent

        await self.event_bus.emit(ToolCallEvent(
            run_id=state.run_id,
            tool_name=tool_name,
            status=status,
            duration=time.time() - start_time if start_time else None,
            observation=None if observation is None else str(observation),
            error=error,
        ))
