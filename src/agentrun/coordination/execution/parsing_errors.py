"""
Policy for turning parsing failures into observations.

The same policy covers agent output parsing errors and tool input parsing
errors. Depending on its mode, a failure is either re-raised or converted into
text that the loop feeds back to the agent through the exception tool.
"""

import logging
from typing import Any, Callable, Tuple, Union

from ...agents.exceptions import (
    AgentConfigurationError,
    OutputParserError,
    ToolInputParsingError,
)
from ...agents.types import AgentAction
from ...environment.tools import EXCEPTION_TOOL_NAME

logger = logging.getLogger(__name__)

INVALID_RESPONSE_OBSERVATION = "Invalid or incomplete response"
INVALID_TOOL_INPUT_OBSERVATION = "Invalid or incomplete tool input. Please try again."


class ParsingErrorPolicy:
    """
    Parsing-error handling mode.

    Modes:
        False: re-raise the error (default)
        True: recover with a generic observation, or the observation embedded
              in an OutputParserError flagged ``send_to_llm``
        str: recover with this exact observation
        callable: recover with ``handler(error)``
    """

    def __init__(self, handler: Union[bool, str, Callable[[Exception], str]] = False):
        self.handler = handler

    @classmethod
    def from_value(cls, value: Any) -> 'ParsingErrorPolicy':
        """
        Create a policy from the flexible ``handle_parsing_errors`` option.

        Raises:
            AgentConfigurationError: If the value is not bool, str or callable
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, (bool, str)) or callable(value):
            return cls(value)
        raise AgentConfigurationError(
            f"Invalid handle_parsing_errors type: {type(value).__name__}",
            config_field="handle_parsing_errors",
            config_value=value,
        )

    @property
    def enabled(self) -> bool:
        return self.handler is not False

    def _custom_observation(self, error: Exception) -> str:
        if isinstance(self.handler, str):
            return self.handler
        return self.handler(error)

    def recover_output_error(self, error: OutputParserError) -> Tuple[str, str]:
        """
        Derive ``(observation, log)`` for an agent output parsing error.

        Raises:
            OutputParserError: The original error, when the policy is disabled
        """
        if not self.enabled:
            raise error

        if self.handler is True:
            if error.send_to_llm:
                return error.observation, error.llm_output or ""
            return INVALID_RESPONSE_OBSERVATION, str(error)

        return self._custom_observation(error), str(error)

    def recover_tool_input_error(self, error: ToolInputParsingError) -> str:
        """
        Derive the observation for a tool input parsing error.

        Raises:
            ToolInputParsingError: The original error, when the policy is disabled
        """
        if not self.enabled:
            raise error

        if self.handler is True:
            return INVALID_TOOL_INPUT_OBSERVATION
        return self._custom_observation(error)

    def exception_action(self, error: OutputParserError) -> AgentAction:
        """Synthesize the action routed to the exception tool."""
        observation, log = self.recover_output_error(error)
        logger.warning(f"Recovered from agent output parsing error: {error}")
        return AgentAction(tool=EXCEPTION_TOOL_NAME, tool_input=observation, log=log)
