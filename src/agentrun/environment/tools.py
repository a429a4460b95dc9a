"""
Tool interfaces consumed by the execution loop.

A tool exposes ``name``, ``return_direct`` and an async ``call``. ``call``
first coerces the action input to what the tool expects (raising
``ToolInputParsingError`` when it cannot), then runs the implementation. Any
failure raised by the implementation itself surfaces as ``ToolExecutionError``.
"""

import asyncio
import functools
import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Type, get_type_hints

from pydantic import BaseModel, ValidationError, create_model

from ..agents.exceptions import (
    ToolExecutionError,
    ToolInputParsingError,
    create_error_from_exception,
)

logger = logging.getLogger(__name__)

EXCEPTION_TOOL_NAME = "_Exception"


class BaseTool(ABC):
    """
    Base class for tools callable by the execution loop.

    Attributes:
        name: Tool name; lookups by the loop are case-insensitive
        description: Human-readable description
        return_direct: If True, a successful call ends the run with its observation
    """

    def __init__(self, name: str, description: str = "", return_direct: bool = False) -> None:
        if not name:
            raise ValueError("Tool name must be a non-empty string")
        self.name = name
        self.description = description
        self.return_direct = return_direct

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, return_direct={self.return_direct})"

    @abstractmethod
    def _parse_input(self, tool_input: Any) -> Any:
        """Coerce the raw action input. Raises ToolInputParsingError."""

    @abstractmethod
    async def _arun(self, parsed_input: Any) -> Any:
        """Run the tool implementation on already-parsed input."""

    async def call(self, tool_input: Any) -> Any:
        """
        Parse the input and execute the tool.

        Args:
            tool_input: Raw input taken from an AgentAction

        Returns:
            The observation produced by the tool

        Raises:
            ToolInputParsingError: If the input cannot be coerced
            ToolExecutionError: If the implementation fails
        """
        parsed = self._parse_input(tool_input)
        try:
            return await self._arun(parsed)
        except (ToolInputParsingError, ToolExecutionError):
            raise
        except Exception as e:
            logger.error(f"Tool execution failed for {self.name}: {e}", exc_info=True)
            raise create_error_from_exception(
                e,
                ToolExecutionError,
                message=f"Tool '{self.name}' failed: {e}",
                tool_name=self.name,
                tool_args=tool_input,
                execution_error=str(e),
            ) from e


async def _invoke(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Await async callables; run sync ones in the default executor."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
    if inspect.isawaitable(result):
        result = await result
    return result


class Tool(BaseTool):
    """
    Tool taking a single string input.

    Accepts either a string or a mapping with a string ``"input"`` entry.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[str], Any],
        description: str = "",
        return_direct: bool = False,
    ) -> None:
        super().__init__(name, description, return_direct)
        self.func = func

    @classmethod
    def from_function(
        cls,
        func: Callable[[str], Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        return_direct: bool = False,
    ) -> "Tool":
        return cls(
            name=name or func.__name__,
            func=func,
            description=description or inspect.getdoc(func) or "",
            return_direct=return_direct,
        )

    def _parse_input(self, tool_input: Any) -> str:
        if isinstance(tool_input, str):
            return tool_input
        if isinstance(tool_input, dict) and isinstance(tool_input.get("input"), str):
            return tool_input["input"]
        raise ToolInputParsingError(
            f"Tool '{self.name}' expects a string input, got {type(tool_input).__name__}",
            tool_name=self.name,
            tool_input=tool_input,
        )

    async def _arun(self, parsed_input: str) -> Any:
        return await _invoke(self.func, parsed_input)


class StructuredTool(BaseTool):
    """
    Tool whose arguments are validated against a pydantic model.

    Input may be a mapping or a JSON object string. Validated fields are passed
    to ``func`` as keyword arguments.
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        args_schema: Type[BaseModel],
        description: str = "",
        return_direct: bool = False,
    ) -> None:
        super().__init__(name, description, return_direct)
        self.func = func
        self.args_schema = args_schema

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        args_schema: Optional[Type[BaseModel]] = None,
        return_direct: bool = False,
    ) -> "StructuredTool":
        """
        Build a tool from a function, deriving the argument schema from its
        signature when none is given.
        """
        tool_name = name or func.__name__
        return cls(
            name=tool_name,
            func=func,
            args_schema=args_schema or _schema_from_signature(func, tool_name),
            description=description or inspect.getdoc(func) or "",
            return_direct=return_direct,
        )

    def _parse_input(self, tool_input: Any) -> Dict[str, Any]:
        raw = tool_input
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ToolInputParsingError(
                    f"Tool '{self.name}' received malformed JSON input: {e}",
                    tool_name=self.name,
                    tool_input=tool_input,
                ) from e

        if not isinstance(raw, dict):
            raise ToolInputParsingError(
                f"Tool '{self.name}' expects an object input, got {type(raw).__name__}",
                tool_name=self.name,
                tool_input=tool_input,
            )

        try:
            model = self.args_schema.model_validate(raw)
        except ValidationError as e:
            raise ToolInputParsingError(
                f"Tool '{self.name}' received invalid arguments: {e}",
                tool_name=self.name,
                tool_input=tool_input,
            ) from e

        return {field_name: getattr(model, field_name) for field_name in type(model).model_fields}

    async def _arun(self, parsed_input: Dict[str, Any]) -> Any:
        return await _invoke(self.func, **parsed_input)


class ExceptionTool(BaseTool):
    """Reserved tool that echoes its input back. Used to report recovered parsing errors."""

    def __init__(self) -> None:
        super().__init__(EXCEPTION_TOOL_NAME, "Exception tool")

    def _parse_input(self, tool_input: Any) -> Any:
        return tool_input

    async def _arun(self, parsed_input: Any) -> Any:
        return parsed_input


def _schema_from_signature(func: Callable[..., Any], tool_name: str) -> Type[BaseModel]:
    """Create a pydantic model mirroring a function's parameters."""
    hints = get_type_hints(func)
    fields: Dict[str, Any] = {}

    for param_name, param in inspect.signature(func).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param_name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param_name] = (annotation, default)

    model_name = "".join(part.capitalize() for part in tool_name.split("_")) + "Args"
    return create_model(model_name, **fields)
