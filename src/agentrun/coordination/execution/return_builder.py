"""
Conversion of a terminal AgentFinish into the externally visible outputs.
"""

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from ...agents.types import AgentFinish

if TYPE_CHECKING:
    from ...agents.agents import BaseAgent
    from ..event_bus import EventBus
    from .run_state import RunState

logger = logging.getLogger(__name__)

INTERMEDIATE_STEPS_KEY = "intermediate_steps"


class ReturnBuilder:
    """Builds the final outputs of a run and notifies end-of-run observers once."""

    def __init__(
        self,
        agent: 'BaseAgent',
        return_intermediate_steps: bool = False,
        event_bus: Optional['EventBus'] = None,
    ):
        self.agent = agent
        self.return_intermediate_steps = return_intermediate_steps
        self.event_bus = event_bus

    async def build(self, finish: AgentFinish, state: 'RunState') -> Dict[str, Any]:
        """
        Merge return values with the agent's prepared extras, optionally attach
        the step history, and mark the run finished.
        """
        steps = list(state.intermediate_steps)
        additional = await self.agent.prepare_for_output(finish.return_values, steps)

        outputs: Dict[str, Any] = {**finish.return_values, **additional}
        if self.return_intermediate_steps:
            outputs[INTERMEDIATE_STEPS_KEY] = steps

        state.finish(outputs)
        logger.info(f"Run {state.run_id} finished after {state.iterations} iterations")

        if self.event_bus:
            from ..status.events import RunEndEvent

            await self.event_bus.emit(RunEndEvent(
                run_id=state.run_id,
                agent_name=self.agent.name,
                outputs=dict(outputs),
                iterations=state.iterations,
                total_duration=state.elapsed(),
                stopped_early=state.stopped_early,
            ))

        return outputs
