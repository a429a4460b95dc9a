"""
Early-stop resolution for runs whose iteration or time budget ran out.
"""

import logging
from typing import TYPE_CHECKING

from ...agents.exceptions import AgentConfigurationError
from ...agents.types import AgentFinish

if TYPE_CHECKING:
    from ...agents.agents import BaseAgent
    from .run_state import RunState

logger = logging.getLogger(__name__)

SUPPORTED_EARLY_STOPPING_METHODS = ("force",)


class EarlyStopResolver:
    """Produces the terminal value of a forcibly ended run."""

    def __init__(self, agent: 'BaseAgent', early_stopping_method: str = "force"):
        self.agent = agent
        self.early_stopping_method = early_stopping_method

    async def resolve(self, state: 'RunState') -> AgentFinish:
        """
        Ask the agent for its stopped response.

        Raises:
            AgentConfigurationError: If the configured method is unsupported
        """
        if self.early_stopping_method not in SUPPORTED_EARLY_STOPPING_METHODS:
            raise AgentConfigurationError(
                f"Got unsupported early_stopping_method: {self.early_stopping_method}",
                config_field="early_stopping_method",
                config_value=self.early_stopping_method,
                run_id=state.run_id,
            )

        logger.info(
            f"Run {state.run_id} stopping early after {state.iterations} iterations "
            f"({state.elapsed():.2f}s)"
        )
        return await self.agent.return_stopped_response(
            self.early_stopping_method,
            list(state.intermediate_steps),
            state.inputs,
        )
