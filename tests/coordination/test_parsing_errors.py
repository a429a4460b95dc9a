"""
Tests for the parsing-error policy.
"""

import pytest

from agentrun.agents.exceptions import (
    AgentConfigurationError,
    OutputParserError,
    ToolInputParsingError,
)
from agentrun.agents.types import AgentAction
from agentrun.coordination.execution.parsing_errors import (
    INVALID_RESPONSE_OBSERVATION,
    INVALID_TOOL_INPUT_OBSERVATION,
    ParsingErrorPolicy,
)


class TestParsingErrorPolicyCreation:
    """Tests for ParsingErrorPolicy.from_value."""

    @pytest.mark.parametrize("value", [False, True, "Try again", lambda e: "x"])
    def test_accepted_values(self, value):
        policy = ParsingErrorPolicy.from_value(value)

        assert policy.handler is value

    def test_policy_passthrough(self):
        policy = ParsingErrorPolicy(True)

        assert ParsingErrorPolicy.from_value(policy) is policy

    @pytest.mark.parametrize("value", [1, None, ["x"]])
    def test_invalid_values(self, value):
        with pytest.raises(AgentConfigurationError):
            ParsingErrorPolicy.from_value(value)

    def test_enabled(self):
        assert not ParsingErrorPolicy(False).enabled
        assert ParsingErrorPolicy(True).enabled
        assert ParsingErrorPolicy("").enabled


class TestOutputErrorRecovery:
    """Tests for agent output parsing error recovery."""

    def test_disabled_reraises(self):
        error = OutputParserError("bad")

        with pytest.raises(OutputParserError) as exc_info:
            ParsingErrorPolicy(False).recover_output_error(error)

        assert exc_info.value is error

    def test_true_uses_generic_observation(self):
        error = OutputParserError("Could not parse LLM output")

        observation, log = ParsingErrorPolicy(True).recover_output_error(error)

        assert observation == INVALID_RESPONSE_OBSERVATION
        assert log == "Could not parse LLM output"

    def test_true_sends_embedded_observation(self):
        error = OutputParserError(
            "bad", llm_output="raw text", observation="Use the JSON format", send_to_llm=True,
        )

        observation, log = ParsingErrorPolicy(True).recover_output_error(error)

        assert observation == "Use the JSON format"
        assert log == "raw text"

    def test_fixed_string(self):
        error = OutputParserError("bad", llm_output="raw text", observation="ignored", send_to_llm=True)

        observation, log = ParsingErrorPolicy("Please retry").recover_output_error(error)

        assert observation == "Please retry"
        assert log == "bad"

    def test_callable(self):
        policy = ParsingErrorPolicy(lambda e: f"Fix this: {e}")

        observation, _ = policy.recover_output_error(OutputParserError("missing action"))

        assert observation == "Fix this: missing action"

    def test_exception_action(self):
        action = ParsingErrorPolicy("Please retry").exception_action(OutputParserError("bad"))

        assert action == AgentAction(tool="_Exception", tool_input="Please retry", log="bad")


class TestToolInputErrorRecovery:
    """Tests for tool input parsing error recovery."""

    def test_disabled_reraises(self):
        with pytest.raises(ToolInputParsingError):
            ParsingErrorPolicy(False).recover_tool_input_error(ToolInputParsingError("bad"))

    def test_true_uses_generic_observation(self):
        observation = ParsingErrorPolicy(True).recover_tool_input_error(ToolInputParsingError("bad"))

        assert observation == INVALID_TOOL_INPUT_OBSERVATION

    def test_fixed_string(self):
        observation = ParsingErrorPolicy("Check the arguments").recover_tool_input_error(
            ToolInputParsingError("bad")
        )

        assert observation == "Check the arguments"

    def test_callable(self):
        policy = ParsingErrorPolicy(lambda e: type(e).__name__)

        assert policy.recover_tool_input_error(ToolInputParsingError("bad")) == "ToolInputParsingError"
