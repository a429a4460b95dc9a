"""
Step-by-step iteration over an agent run.

The iterator is an explicit state object: every ``next_step()`` call runs one
loop cycle and returns its output. Nothing runs between pulls, so a caller
cancels a run simply by not pulling again.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ...agents.exceptions import FinalOutputsReachedError
from ...agents.types import AgentStep

if TYPE_CHECKING:
    from .loop_controller import LoopController
    from .run_state import RunState

logger = logging.getLogger(__name__)


class AgentExecutorIterator:
    """
    Externally driven run.

    Each pull returns either ``{"intermediate_steps": [...]}`` for a
    non-terminal cycle or the final outputs on the terminal cycle. Pulling
    again after the final outputs were returned returns them again; pulling
    after the run finished without delivering them raises
    FinalOutputsReachedError.

    Supports ``async for``, which stops after the final outputs.

    Example:
        iterator = executor.iter({"input": "hello"})
        async for output in iterator:
            print(output)
    """

    def __init__(
        self,
        controller: 'LoopController',
        inputs: Any,
        run_name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ):
        self._controller = controller
        self._inputs = inputs
        self._run_name = run_name
        self._tags = tags
        self._metadata = metadata
        self._abort_signal = abort_signal
        self._state: 'RunState' = self._new_state()
        self._delivered = False

    def _new_state(self) -> 'RunState':
        return self._controller.new_state(
            self._inputs,
            run_name=self._run_name,
            tags=self._tags,
            metadata=self._metadata,
            abort_signal=self._abort_signal,
        )

    def reset(self) -> None:
        """Discard all progress; the next pull starts a new run."""
        previous = self._state.run_id
        self._state = self._new_state()
        self._delivered = False
        logger.debug(f"Iterator reset: run {previous} discarded, starting {self._state.run_id}")

    @property
    def run_id(self) -> str:
        return self._state.run_id

    @property
    def iterations(self) -> int:
        return self._state.iterations

    @property
    def intermediate_steps(self) -> List[AgentStep]:
        return list(self._state.intermediate_steps)

    @property
    def final_outputs(self) -> Optional[Dict[str, Any]]:
        return self._state.final_outputs

    @property
    def finished(self) -> bool:
        return self._state.finished

    async def next_step(self) -> Dict[str, Any]:
        """
        Run one cycle and return its output.

        Raises:
            FinalOutputsReachedError: If the run finished but its outputs were
                                      never returned by this iterator
        """
        if self._state.finished:
            if self._delivered:
                return self._state.final_outputs
            raise FinalOutputsReachedError(self._state.final_outputs, run_id=self._state.run_id)

        outcome = await self._controller.advance(self._state)
        if outcome.finished:
            self._delivered = True
        return outcome.output

    def __aiter__(self) -> 'AgentExecutorIterator':
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self._state.finished and self._delivered:
            raise StopAsyncIteration
        return await self.next_step()
