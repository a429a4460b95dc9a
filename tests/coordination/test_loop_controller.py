"""
Tests for the loop controller and the components it drives.

This module tests:
- StepExecutor planning cycles and parsing error recovery
- EarlyStopResolver
- ReturnBuilder output assembly
- RunState bookkeeping
- LoopController input preparation, continuation and cycle transitions
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from agentrun.agents.agents import FORCE_STOP_MESSAGE, RunnableAgent
from agentrun.agents.exceptions import (
    AgentConfigurationError,
    FinalOutputsReachedError,
    MissingInputError,
    OutputParserError,
    RunAbortedError,
    RunStateError,
    ToolExecutionError,
)
from agentrun.agents.types import AgentAction, AgentFinish, AgentStep
from agentrun.coordination.config import ExecutorConfig
from agentrun.coordination.event_bus import EventBus
from agentrun.coordination.execution import (
    EarlyStopResolver,
    LoopController,
    LoopState,
    ParsingErrorPolicy,
    ReturnBuilder,
    RunState,
    StepExecutor,
    ToolDispatcher,
    build_tool_table,
)
from agentrun.environment.tools import Tool


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def echo_tool():
    return Tool("echo", lambda text: text)


@pytest.fixture
def echo_then_finish():
    """Calls echo once, then finishes with the observation."""
    def planner(steps, inputs):
        if steps:
            return AgentFinish({"output": steps[-1].observation}, log="done")
        return AgentAction("echo", inputs["input"], log="echoing")

    return RunnableAgent(planner, input_keys=["input"])


@pytest.fixture
def always_echo():
    """Never finishes on its own."""
    return RunnableAgent(lambda steps, inputs: AgentAction("echo", f"call {len(steps)}"))


def make_controller(agent, tools, event_bus=None, **config):
    return LoopController(agent, tools, ExecutorConfig(**config), event_bus)


# =============================================================================
# StepExecutor Tests
# =============================================================================

class TestStepExecutor:
    """Tests for a single planning cycle."""

    @pytest.mark.asyncio
    async def test_finish_passed_through(self, echo_tool):
        finish = AgentFinish({"output": "x"})
        agent = RunnableAgent(lambda steps, inputs: finish)
        executor = StepExecutor(agent, ToolDispatcher(ParsingErrorPolicy(False)), ParsingErrorPolicy(False))
        table = build_tool_table([echo_tool])

        result = await executor.take_next_step(table, {}, [], RunState(inputs={}, tool_table=table))

        assert result is finish

    @pytest.mark.asyncio
    async def test_single_action_produces_one_step(self, echo_tool, always_echo):
        policy = ParsingErrorPolicy(False)
        executor = StepExecutor(always_echo, ToolDispatcher(policy), policy)
        table = build_tool_table([echo_tool])

        result = await executor.take_next_step(table, {}, [], RunState(inputs={}, tool_table=table))

        assert result == [AgentStep(AgentAction("echo", "call 0"), "call 0")]

    @pytest.mark.asyncio
    async def test_parser_error_raised_when_disabled(self, echo_tool):
        agent = RunnableAgent(lambda steps, inputs: "garbage")
        policy = ParsingErrorPolicy(False)
        executor = StepExecutor(agent, ToolDispatcher(policy), policy)
        table = build_tool_table([echo_tool])

        with pytest.raises(OutputParserError):
            await executor.take_next_step(table, {}, [], RunState(inputs={}, tool_table=table))

    @pytest.mark.asyncio
    async def test_parser_error_routed_to_exception_tool(self, echo_tool):
        agent = RunnableAgent(lambda steps, inputs: "garbage")
        policy = ParsingErrorPolicy("Reply with an action")
        executor = StepExecutor(agent, ToolDispatcher(policy), policy)
        table = build_tool_table([echo_tool])

        result = await executor.take_next_step(table, {}, [], RunState(inputs={}, tool_table=table))

        assert len(result) == 1
        assert result[0].action.tool == "_Exception"
        assert result[0].action.tool_input == "Reply with an action"
        assert result[0].observation == "Reply with an action"

    @pytest.mark.asyncio
    async def test_emits_action_events(self, echo_tool, always_echo):
        bus = EventBus()
        policy = ParsingErrorPolicy(False)
        executor = StepExecutor(always_echo, ToolDispatcher(policy), policy, bus)
        table = build_tool_table([echo_tool])
        state = RunState(inputs={}, tool_table=table)
        state.iterations = 4

        await executor.take_next_step(table, {}, [], state)

        actions = [e for e in bus.events if e.event_type == "agentaction"]
        assert len(actions) == 1
        assert actions[0].tool == "echo"
        assert actions[0].iteration == 4


# =============================================================================
# EarlyStopResolver Tests
# =============================================================================

class TestEarlyStopResolver:
    """Tests for early stop resolution."""

    @pytest.mark.asyncio
    async def test_force(self, always_echo):
        finish = await EarlyStopResolver(always_echo, "force").resolve(RunState(inputs={}))

        assert finish.return_values == {"output": FORCE_STOP_MESSAGE}

    @pytest.mark.asyncio
    async def test_unsupported_method(self, always_echo):
        with pytest.raises(AgentConfigurationError, match="Got unsupported early_stopping_method: generate"):
            await EarlyStopResolver(always_echo, "generate").resolve(RunState(inputs={}))


# =============================================================================
# ReturnBuilder Tests
# =============================================================================

class TestReturnBuilder:
    """Tests for final output assembly."""

    @pytest.mark.asyncio
    async def test_outputs_without_steps(self, always_echo):
        state = RunState(inputs={})

        outputs = await ReturnBuilder(always_echo).build(AgentFinish({"output": "a"}), state)

        assert outputs == {"output": "a"}
        assert state.finished
        assert state.final_outputs is outputs

    @pytest.mark.asyncio
    async def test_prepared_extras_merged_and_steps_last(self, always_echo):
        always_echo.prepare_for_output = AsyncMock(return_value={"usage": 12})
        step = AgentStep(AgentAction("echo", "x"), "x")
        state = RunState(inputs={}, intermediate_steps=[step])

        outputs = await ReturnBuilder(always_echo, return_intermediate_steps=True).build(
            AgentFinish({"output": "a"}), state,
        )

        assert list(outputs) == ["output", "usage", "intermediate_steps"]
        assert outputs["intermediate_steps"] == [step]

    @pytest.mark.asyncio
    async def test_emits_run_end_once(self, always_echo):
        bus = EventBus()
        state = RunState(inputs={})

        await ReturnBuilder(always_echo, event_bus=bus).build(AgentFinish({"output": "a"}), state)

        assert bus.get_event_count("RunEndEvent") == 1
        assert bus.events[0].outputs == {"output": "a"}


# =============================================================================
# RunState Tests
# =============================================================================

class TestRunState:
    """Tests for RunState bookkeeping."""

    def test_initial_state(self):
        state = RunState(inputs={"input": "x"})

        assert state.loop_state is LoopState.RUNNING
        assert state.iterations == 0
        assert state.elapsed() == 0.0
        assert not state.abort_requested

    def test_cannot_append_after_finish(self):
        state = RunState(inputs={})
        state.finish({"output": "done"})

        with pytest.raises(RunStateError):
            state.append_steps([AgentStep(AgentAction("echo", "x"), "x")])

    def test_cannot_finish_twice(self):
        state = RunState(inputs={})
        state.finish({"output": "done"})

        with pytest.raises(RunStateError):
            state.finish({"output": "again"})

    def test_abort_requested(self):
        signal = asyncio.Event()
        state = RunState(inputs={}, abort_signal=signal)

        signal.set()

        assert state.abort_requested

    def test_distinct_run_ids(self):
        assert RunState(inputs={}).run_id != RunState(inputs={}).run_id


# =============================================================================
# LoopController Tests
# =============================================================================

class TestPrepareInputs:
    """Tests for input preparation."""

    def test_mapping_passthrough(self, echo_then_finish, echo_tool):
        controller = make_controller(echo_then_finish, [echo_tool])

        assert controller.prepare_inputs({"input": "hi", "extra": 1}) == {"input": "hi", "extra": 1}

    def test_bare_value_with_single_input_key(self, echo_then_finish, echo_tool):
        controller = make_controller(echo_then_finish, [echo_tool])

        assert controller.prepare_inputs("hi") == {"input": "hi"}

    def test_bare_value_without_single_input_key(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool])

        with pytest.raises(MissingInputError):
            controller.prepare_inputs("hi")

    def test_missing_keys(self, echo_then_finish, echo_tool):
        controller = make_controller(echo_then_finish, [echo_tool])

        with pytest.raises(MissingInputError) as exc_info:
            controller.prepare_inputs({"question": "hi"})

        assert exc_info.value.missing_keys == ["input"]


class TestShouldContinue:
    """Tests for the continuation predicate."""

    def test_iteration_bound(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool], max_iterations=2)
        state = controller.new_state({})

        assert controller.should_continue(state)
        state.iterations = 2
        assert not controller.should_continue(state)

    def test_zero_iterations(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool], max_iterations=0)

        assert not controller.should_continue(controller.new_state({}))

    def test_unbounded(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool], max_iterations=None)
        state = controller.new_state({})
        state.iterations = 10_000

        assert controller.should_continue(state)

    def test_time_bound(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool], max_execution_time=0.0)
        state = controller.new_state({})
        state.start()

        assert not controller.should_continue(state)


class TestAdvance:
    """Tests for single cycle transitions."""

    @pytest.mark.asyncio
    async def test_non_terminal_then_terminal(self, echo_then_finish, echo_tool):
        controller = make_controller(echo_then_finish, [echo_tool])
        state = controller.new_state({"input": "hi"})

        first = await controller.advance(state)

        assert not first.finished
        assert first.output == {
            "intermediate_steps": [AgentStep(AgentAction("echo", "hi", log="echoing"), "hi")]
        }
        assert state.iterations == 1

        second = await controller.advance(state)

        assert second.finished
        assert second.output == {"output": "hi"}
        assert state.iterations == 1
        assert state.finished

    @pytest.mark.asyncio
    async def test_advance_after_finish(self, echo_then_finish, echo_tool):
        controller = make_controller(echo_then_finish, [echo_tool], max_iterations=0)
        state = controller.new_state({"input": "hi"})
        await controller.advance(state)

        with pytest.raises(FinalOutputsReachedError):
            await controller.advance(state)

    @pytest.mark.asyncio
    async def test_budget_exhausted_forces_stop(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool], max_iterations=0)
        state = controller.new_state({})

        outcome = await controller.advance(state)

        assert outcome.finished
        assert outcome.output == {"output": FORCE_STOP_MESSAGE}
        assert state.stopped_early
        assert state.intermediate_steps == []

    @pytest.mark.asyncio
    async def test_unsupported_stopping_method_fails_at_stop(self, always_echo, echo_tool):
        controller = make_controller(
            always_echo, [echo_tool], max_iterations=1, early_stopping_method="generate",
        )
        state = controller.new_state({})

        await controller.advance(state)
        with pytest.raises(AgentConfigurationError):
            await controller.advance(state)

    @pytest.mark.asyncio
    async def test_abort_signal(self, always_echo, echo_tool):
        controller = make_controller(always_echo, [echo_tool])
        signal = asyncio.Event()
        state = controller.new_state({}, abort_signal=signal)

        await controller.advance(state)
        signal.set()

        with pytest.raises(RunAbortedError) as exc_info:
            await controller.advance(state)

        assert exc_info.value.iterations == 1
        assert len(state.intermediate_steps) == 1

    @pytest.mark.asyncio
    async def test_failed_run_cannot_continue(self, echo_tool):
        def broken(text):
            raise RuntimeError("down")

        agent = RunnableAgent(lambda steps, inputs: AgentAction("broken", "x"))
        controller = make_controller(agent, [Tool("broken", broken)])
        state = controller.new_state({})

        with pytest.raises(ToolExecutionError):
            await controller.advance(state)

        with pytest.raises(RunStateError, match="Run already failed with ToolExecutionError"):
            await controller.advance(state)

    @pytest.mark.asyncio
    async def test_error_event_emitted_once(self):
        def broken(text):
            raise RuntimeError("down")

        bus = EventBus()
        agent = RunnableAgent(lambda steps, inputs: AgentAction("broken", "x"))
        controller = make_controller(agent, [Tool("broken", broken)], event_bus=bus)
        state = controller.new_state({})

        with pytest.raises(ToolExecutionError):
            await controller.advance(state)
        with pytest.raises(RunStateError):
            await controller.advance(state)

        assert bus.get_event_count("RunErrorEvent") == 1
        error_event = [e for e in bus.events if e.event_type == "runerror"][0]
        assert error_event.error_type == "ToolExecutionError"
        assert error_event.error_code == "TOOL_EXECUTION_ERROR"
        assert bus.get_event_count("RunEndEvent") == 0

    @pytest.mark.asyncio
    async def test_start_event_emitted_once(self, echo_then_finish, echo_tool):
        bus = EventBus()
        controller = make_controller(echo_then_finish, [echo_tool], event_bus=bus)
        state = controller.new_state({"input": "hi"}, run_name="demo", tags=["t1"])

        await controller.advance(state)
        await controller.advance(state)

        assert bus.get_event_count("RunStartEvent") == 1
        start = bus.events[0]
        assert start.run_name == "demo"
        assert start.tags == ["t1"]
        assert start.inputs == {"input": "hi"}

    @pytest.mark.asyncio
    async def test_return_direct_judged_on_last_step(self):
        direct = Tool("lookup", lambda text: f"found {text}", return_direct=True)
        plain = Tool("note", lambda text: text)
        agent = RunnableAgent(
            lambda steps, inputs: [AgentAction("note", "n"), AgentAction("lookup", "x")],
            multi_action=True,
        )
        controller = make_controller(agent, [plain, direct])
        state = controller.new_state({})

        outcome = await controller.advance(state)

        assert outcome.finished
        assert outcome.output == {"output": "found x"}
        assert len(state.intermediate_steps) == 2
