"""
Step executor for a single planning cycle.

Asks the agent for its next move given the current history and, unless the
agent finished, dispatches the chosen actions. It has no notion of iterations
or budgets; those belong to the loop controller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING, Union

from ...agents.exceptions import OutputParserError
from ...agents.types import AgentFinish, AgentStep
from .parsing_errors import ParsingErrorPolicy
from .tool_executor import ToolDispatcher

if TYPE_CHECKING:
    from ...agents.agents import BaseAgent
    from ...environment.tools import BaseTool
    from ..event_bus import EventBus
    from .run_state import RunState

logger = logging.getLogger(__name__)


class StepExecutor:
    """
    Executes one planning cycle.

    This component is responsible for:
    1. Calling the agent's plan() with the current history
    2. Recovering from output parsing errors per policy
    3. Emitting an action event per chosen action
    4. Handing the actions to the tool dispatcher
    """

    def __init__(
        self,
        agent: 'BaseAgent',
        dispatcher: ToolDispatcher,
        policy: ParsingErrorPolicy,
        event_bus: Optional['EventBus'] = None,
    ):
        self.agent = agent
        self.dispatcher = dispatcher
        self.policy = policy
        self.event_bus = event_bus

    async def take_next_step(
        self,
        tool_table: Dict[str, 'BaseTool'],
        inputs: Dict[str, Any],
        intermediate_steps: List[AgentStep],
        state: 'RunState',
    ) -> Union[AgentFinish, List[AgentStep]]:
        """
        Run one cycle.

        Args:
            tool_table: Lower-cased tool name -> tool
            inputs: The run inputs
            intermediate_steps: History so far
            state: Run state, used for event correlation

        Returns:
            The agent's AgentFinish unmodified, or one new step per action in
            the order the agent produced them
        """
        try:
            output = await self.agent.plan(list(intermediate_steps), inputs)
        except OutputParserError as e:
            if not self.policy.enabled:
                raise
            output = self.policy.exception_action(e)

        if isinstance(output, AgentFinish):
            logger.debug(f"Agent {self.agent.name} finished after {len(intermediate_steps)} steps")
            return output

        actions = output if isinstance(output, list) else [output]

        for action in actions:
            logger.debug(f"Agent {self.agent.name} chose tool '{action.tool}'")
            await self._emit_action(action, state)

        return await self.dispatcher.dispatch_many(actions, tool_table, state)

    async def _emit_action(self, action, state: 'RunState') -> None:
        if not self.event_bus:
            return
        from ..status.events import AgentActionEvent

        await self.event_bus.emit(AgentActionEvent(
            run_id=state.run_id,
            agent_name=self.agent.name,
            tool=action.tool,
            tool_input=action.tool_input,
            log=action.log,
            iteration=state.iterations,
        ))
