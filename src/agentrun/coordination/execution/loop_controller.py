"""
Loop controller: the state machine shared by the run-to-completion driver and
the step iterator.

Each call to ``advance`` performs exactly one cycle on a RunState:

    RUNNING --(agent finish | return-direct tool)--> FINISHED
    RUNNING --(steps produced)--> RUNNING            (iterations += 1)
    RUNNING --(budget exhausted)--> STOPPING --> FINISHED

Both execution modes call the same ``advance``, so their outputs cannot
diverge for the same agent, tools and configuration.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from ...agents.exceptions import (
    AgentFrameworkError,
    FinalOutputsReachedError,
    MissingInputError,
    RunAbortedError,
    RunStateError,
)
from ...agents.types import AgentFinish, AgentStep
from .early_stopping import EarlyStopResolver
from .parsing_errors import ParsingErrorPolicy
from .return_builder import INTERMEDIATE_STEPS_KEY, ReturnBuilder
from .run_state import LoopState, RunState
from .step_executor import StepExecutor
from .tool_executor import ToolDispatcher, build_tool_table

if TYPE_CHECKING:
    from ...agents.agents import BaseAgent
    from ...environment.tools import BaseTool
    from ..config import ExecutorConfig
    from ..event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class CycleOutcome:
    """Result of one loop cycle."""
    output: Dict[str, Any]
    finished: bool


class LoopController:
    """Owns the continuation predicate and drives RunStates one cycle at a time."""

    def __init__(
        self,
        agent: 'BaseAgent',
        tools: Sequence['BaseTool'],
        config: 'ExecutorConfig',
        event_bus: Optional['EventBus'] = None,
    ):
        self.agent = agent
        self.tools = list(tools)
        self.config = config
        self.event_bus = event_bus

        self.policy = ParsingErrorPolicy.from_value(config.handle_parsing_errors)
        self.dispatcher = ToolDispatcher(self.policy, event_bus, config.max_concurrency)
        self.step_executor = StepExecutor(agent, self.dispatcher, self.policy, event_bus)
        self.early_stop_resolver = EarlyStopResolver(agent, config.early_stopping_method)
        self.return_builder = ReturnBuilder(agent, config.return_intermediate_steps, event_bus)

    # ------------------------------------------------------------------
    # Run setup
    # ------------------------------------------------------------------

    def prepare_inputs(self, inputs: Any) -> Dict[str, Any]:
        """
        Normalize and validate run inputs.

        A bare value is accepted when the agent declares exactly one input key.

        Raises:
            MissingInputError: If declared input keys are missing
        """
        input_keys = self.agent.input_keys
        if not isinstance(inputs, dict):
            if len(input_keys) != 1:
                raise MissingInputError(
                    f"A single input value requires exactly one declared input key, "
                    f"agent declares {input_keys}",
                    missing_keys=list(input_keys),
                    agent_name=self.agent.name,
                )
            inputs = {input_keys[0]: inputs}

        missing = [key for key in input_keys if key not in inputs]
        if missing:
            raise MissingInputError(
                f"Missing some input keys: {missing}",
                missing_keys=missing,
                agent_name=self.agent.name,
            )
        return dict(inputs)

    def new_state(
        self,
        inputs: Any,
        run_name: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> RunState:
        """Create the state for a fresh run with its own tool table."""
        return RunState(
            inputs=self.prepare_inputs(inputs),
            tool_table=build_tool_table(self.tools),
            run_name=run_name,
            tags=list(tags or []),
            metadata=dict(metadata or {}),
            abort_signal=abort_signal,
        )

    # ------------------------------------------------------------------
    # Continuation predicate
    # ------------------------------------------------------------------

    def should_continue(self, state: RunState) -> bool:
        max_iterations = self.config.max_iterations
        if max_iterations is not None and state.iterations >= max_iterations:
            return False

        max_execution_time = self.config.max_execution_time
        if max_execution_time is not None and state.elapsed() >= max_execution_time:
            return False

        return True

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def advance(self, state: RunState) -> CycleOutcome:
        """
        Perform one cycle.

        Raises:
            FinalOutputsReachedError: If the run already finished
            RunStateError: If the run previously failed
            Any fatal error of the cycle, after the run-error event fired
        """
        if state.finished:
            raise FinalOutputsReachedError(state.final_outputs, run_id=state.run_id)
        if state.error is not None:
            raise RunStateError(
                f"Run already failed with {type(state.error).__name__}: {state.error}",
                run_id=state.run_id,
            ) from state.error

        try:
            return await self._cycle(state)
        except Exception as e:
            await self._on_error(state, e)
            raise

    async def _cycle(self, state: RunState) -> CycleOutcome:
        if not state.started:
            await self._on_start(state)

        if state.abort_requested:
            raise RunAbortedError(iterations=state.iterations, run_id=state.run_id)

        if not self.should_continue(state):
            state.loop_state = LoopState.STOPPING
            state.stopped_early = True
            finish = await self.early_stop_resolver.resolve(state)
            outputs = await self.return_builder.build(finish, state)
            return CycleOutcome(output=outputs, finished=True)

        next_step_output = await self.step_executor.take_next_step(
            state.tool_table,
            state.inputs,
            state.intermediate_steps,
            state,
        )

        if isinstance(next_step_output, AgentFinish):
            outputs = await self.return_builder.build(next_step_output, state)
            return CycleOutcome(output=outputs, finished=True)

        state.append_steps(next_step_output)

        tool_return = self._get_tool_return(state, next_step_output)
        if tool_return is not None:
            outputs = await self.return_builder.build(tool_return, state)
            return CycleOutcome(output=outputs, finished=True)

        state.iterations += 1
        return CycleOutcome(output={INTERMEDIATE_STEPS_KEY: list(next_step_output)}, finished=False)

    def _get_tool_return(self, state: RunState, new_steps: List[AgentStep]) -> Optional[AgentFinish]:
        """Finish value for a return-direct tool, judged on the cycle's last step."""
        if not new_steps:
            return None
        last_step = new_steps[-1]
        tool_name = last_step.action.tool
        if not isinstance(tool_name, str):
            return None
        tool = state.tool_table.get(tool_name.lower())
        if tool is None or not tool.return_direct:
            return None

        logger.info(f"Tool {tool.name} is return-direct, ending run {state.run_id}")
        return AgentFinish(return_values={self.agent.primary_output_key: last_step.observation}, log="")

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def _on_start(self, state: RunState) -> None:
        state.start()
        logger.info(f"Starting run {state.run_id} for agent {self.agent.name}")

        if self.event_bus:
            from ..status.events import RunStartEvent

            await self.event_bus.emit(RunStartEvent(
                run_id=state.run_id,
                agent_name=self.agent.name,
                inputs=dict(state.inputs),
                run_name=state.run_name,
                tags=list(state.tags),
                metadata=dict(state.metadata),
            ))

    async def _on_error(self, state: RunState, error: Exception) -> None:
        if state.error is not None:
            return
        state.error = error
        logger.error(f"Run {state.run_id} aborted: {type(error).__name__}: {error}")

        if self.event_bus:
            from ..status.events import RunErrorEvent

            await self.event_bus.emit(RunErrorEvent(
                run_id=state.run_id,
                agent_name=self.agent.name,
                error_type=type(error).__name__,
                message=str(error),
                error_code=error.error_code if isinstance(error, AgentFrameworkError) else None,
                iterations=state.iterations,
            ))
