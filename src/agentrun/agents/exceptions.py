"""
Agent Executor Exception Hierarchy

This module defines the exception hierarchy used by the execution loop. Every
error carries an error code, optional context and a user-facing message so
callers can log or serialize failures uniformly.

Errors fall into two groups:
1. Recoverable parsing errors (agent output, tool input) that the loop may turn
   into observations, depending on the configured parsing-error policy
2. Fatal errors (tool execution, configuration, protocol misuse, aborts) that
   always end the run and propagate to the caller
"""

import time
from typing import Any, Dict, List, Optional


class AgentFrameworkError(Exception):
    """
    Base exception class for all agent executor errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        agent_name: Name of the agent where error occurred (if applicable)
        run_id: Run ID where error occurred (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "AGENT_FRAMEWORK_ERROR",
        agent_name: Optional[str] = None,
        run_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.agent_name = agent_name
        self.run_id = run_id
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    @property
    def message(self) -> str:
        return self.developer_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "agent_name": self.agent_name,
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        return self.developer_message


# =============================================================================
# PARSING ERRORS (recoverable per policy)
# =============================================================================

class OutputParserError(AgentFrameworkError):
    """
    Raised by an agent when the decision output cannot be parsed into an
    action or finish.

    When ``send_to_llm`` is set, ``observation`` and ``llm_output`` are handed
    back to the agent verbatim if parsing errors are handled with ``True``.
    """

    def __init__(
        self,
        message: str,
        llm_output: Optional[str] = None,
        observation: Optional[str] = None,
        send_to_llm: bool = False,
        **kwargs
    ):
        if send_to_llm and (observation is None or llm_output is None):
            raise ValueError(
                "Arguments 'observation' & 'llm_output' are required if 'send_to_llm' is True"
            )
        self.llm_output = llm_output
        self.observation = observation
        self.send_to_llm = send_to_llm

        context = kwargs.pop("context", None) or {}
        if llm_output:
            context["llm_output"] = llm_output[:200] + "..." if len(llm_output) > 200 else llm_output

        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "OUTPUT_PARSER_ERROR"),
            context=context,
            user_message="The agent produced output that could not be parsed.",
            suggestion="Enable handle_parsing_errors to feed the failure back to the agent.",
            **kwargs
        )


class ToolInputParsingError(AgentFrameworkError):
    """Raised when an action's input cannot be coerced to the tool's expected input."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        tool_input: Any = None,
        **kwargs
    ):
        self.tool_name = tool_name
        self.tool_input = tool_input

        context = kwargs.pop("context", None) or {}
        if tool_name:
            context["tool_name"] = tool_name
        if tool_input is not None:
            context["tool_input"] = str(tool_input)

        super().__init__(
            message,
            error_code="TOOL_INPUT_PARSING_ERROR",
            context=context,
            user_message="The tool input is invalid or incomplete.",
            suggestion="Check the tool's argument schema.",
            **kwargs
        )


# =============================================================================
# FATAL ERRORS
# =============================================================================

class ToolExecutionError(AgentFrameworkError):
    """
    Raised when a tool's own implementation fails. Never recovered by the loop.
    """

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        tool_args: Any = None,
        execution_error: Optional[str] = None,
        **kwargs
    ):
        self.tool_name = tool_name
        self.tool_args = tool_args
        self.execution_error = execution_error

        context = kwargs.pop("context", None) or {}
        if tool_name:
            context["tool_name"] = tool_name
        if tool_args is not None:
            context["tool_args"] = str(tool_args)
        if execution_error:
            context["execution_error"] = execution_error

        super().__init__(
            message,
            error_code="TOOL_EXECUTION_ERROR",
            context=context,
            user_message="Tool execution failed.",
            suggestion="Check tool arguments and ensure tool is available and functional.",
            **kwargs
        )


class AgentConfigurationError(AgentFrameworkError):
    """
    Raised when executor or agent configuration is invalid.

    Examples:
    - Unsupported early stopping method
    - Return-direct tool combined with a multi-action agent
    - Invalid handle_parsing_errors value
    """

    def __init__(
        self,
        message: str,
        config_field: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        self.config_field = config_field
        self.config_value = config_value

        context = kwargs.pop("context", None) or {}
        if config_field:
            context["config_field"] = config_field
        if config_value is not None:
            context["config_value"] = str(config_value)

        super().__init__(
            message,
            error_code="AGENT_CONFIGURATION_ERROR",
            context=context,
            user_message="The agent configuration is invalid.",
            suggestion="Check executor configuration for missing or invalid fields.",
            **kwargs
        )


class MissingInputError(AgentFrameworkError):
    """Raised when run inputs lack keys the agent declares as required."""

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None, **kwargs):
        self.missing_keys = missing_keys or []

        context = kwargs.pop("context", None) or {}
        if missing_keys:
            context["missing_keys"] = missing_keys

        super().__init__(
            message,
            error_code="MISSING_INPUT_ERROR",
            context=context,
            user_message="Required inputs are missing.",
            suggestion=f"Provide values for: {', '.join(self.missing_keys)}" if self.missing_keys else None,
            **kwargs
        )


# =============================================================================
# RUN STATE ERRORS
# =============================================================================

class RunStateError(AgentFrameworkError):
    """Base class for run lifecycle errors."""

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "RUN_STATE_ERROR")
        super().__init__(message, error_code=error_code, **kwargs)


class FinalOutputsReachedError(RunStateError):
    """Raised when a run is advanced after it already produced its final outputs."""

    def __init__(self, final_outputs: Dict[str, Any], **kwargs):
        self.final_outputs = final_outputs
        super().__init__(
            f"Final outputs already reached: {final_outputs!r}",
            error_code="FINAL_OUTPUTS_REACHED",
            user_message="The run has already finished.",
            **kwargs
        )


class RunAbortedError(RunStateError):
    """Raised when a run observes its abort signal before the next planning call."""

    def __init__(self, message: str = "Run aborted by caller", iterations: Optional[int] = None, **kwargs):
        self.iterations = iterations
        context = kwargs.pop("context", None) or {}
        if iterations is not None:
            context["iterations"] = iterations
        super().__init__(
            message,
            error_code="RUN_ABORTED",
            context=context,
            **kwargs
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def create_error_from_exception(
    original_exception: BaseException,
    error_class: type = AgentFrameworkError,
    **kwargs
) -> AgentFrameworkError:
    """
    Convert a generic exception to a framework-specific error.

    Args:
        original_exception: The original exception to convert
        error_class: The framework error class to use
        **kwargs: Additional arguments for the error class

    Returns:
        Framework-specific error with original exception information
    """
    context = kwargs.pop("context", None) or {}
    context["original_exception_type"] = type(original_exception).__name__
    context["original_exception_message"] = str(original_exception)

    message = kwargs.pop(
        "message",
        f"Converted from {type(original_exception).__name__}: {original_exception}"
    )

    error = error_class(message, context=context, **kwargs)
    error.__cause__ = original_exception
    return error
