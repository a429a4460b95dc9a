"""
Tests for the agentrun.environment.tools module.

This module tests:
- Tool string input coercion
- StructuredTool schema derivation and pydantic validation
- Wrapping of implementation failures into ToolExecutionError
- The reserved exception tool
"""

import pytest
from pydantic import BaseModel

from agentrun.agents.exceptions import ToolExecutionError, ToolInputParsingError
from agentrun.environment.tools import (
    EXCEPTION_TOOL_NAME,
    ExceptionTool,
    StructuredTool,
    Tool,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def upper_tool():
    """A sync single-input tool."""
    def upper(text: str) -> str:
        """Uppercase the text."""
        return text.upper()

    return Tool.from_function(upper)


@pytest.fixture
def add_tool():
    """A structured tool with an inferred schema."""
    def add(a: int, b: int = 1) -> int:
        """Add two numbers."""
        return a + b

    return StructuredTool.from_function(add)


# =============================================================================
# Tool Tests
# =============================================================================

class TestTool:
    """Tests for single-input tools."""

    def test_from_function_metadata(self, upper_tool):
        assert upper_tool.name == "upper"
        assert upper_tool.description == "Uppercase the text."
        assert upper_tool.return_direct is False

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            Tool("", lambda text: text)

    @pytest.mark.asyncio
    async def test_string_input(self, upper_tool):
        assert await upper_tool.call("hello") == "HELLO"

    @pytest.mark.asyncio
    async def test_mapping_input(self, upper_tool):
        assert await upper_tool.call({"input": "hello"}) == "HELLO"

    @pytest.mark.asyncio
    async def test_invalid_input(self, upper_tool):
        with pytest.raises(ToolInputParsingError) as exc_info:
            await upper_tool.call(42)

        assert exc_info.value.tool_name == "upper"
        assert exc_info.value.tool_input == 42

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def shout(text: str) -> str:
            return text + "!"

        tool = Tool.from_function(shout, name="shout", return_direct=True)

        assert tool.return_direct is True
        assert await tool.call("hey") == "hey!"

    @pytest.mark.asyncio
    async def test_implementation_failure_wrapped(self):
        def broken(text: str) -> str:
            raise RuntimeError("disk full")

        tool = Tool.from_function(broken)

        with pytest.raises(ToolExecutionError) as exc_info:
            await tool.call("x")

        error = exc_info.value
        assert error.tool_name == "broken"
        assert error.execution_error == "disk full"
        assert isinstance(error.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_parsing_error_raised_by_implementation_not_wrapped(self):
        def strict(text: str) -> str:
            raise ToolInputParsingError("not a date", tool_name="strict", tool_input=text)

        tool = Tool.from_function(strict)

        with pytest.raises(ToolInputParsingError):
            await tool.call("tomorrow")


# =============================================================================
# StructuredTool Tests
# =============================================================================

class TestStructuredTool:
    """Tests for schema-validated tools."""

    def test_schema_inferred_from_signature(self, add_tool):
        fields = add_tool.args_schema.model_fields

        assert set(fields) == {"a", "b"}
        assert fields["a"].is_required()
        assert not fields["b"].is_required()
        assert add_tool.args_schema.__name__ == "AddArgs"

    @pytest.mark.asyncio
    async def test_mapping_input(self, add_tool):
        assert await add_tool.call({"a": 2, "b": 3}) == 5

    @pytest.mark.asyncio
    async def test_default_argument(self, add_tool):
        assert await add_tool.call({"a": 2}) == 3

    @pytest.mark.asyncio
    async def test_json_string_input(self, add_tool):
        assert await add_tool.call('{"a": 4, "b": 5}') == 9

    @pytest.mark.asyncio
    async def test_malformed_json(self, add_tool):
        with pytest.raises(ToolInputParsingError, match="malformed JSON"):
            await add_tool.call("{a: 4")

    @pytest.mark.asyncio
    async def test_non_object_input(self, add_tool):
        with pytest.raises(ToolInputParsingError, match="expects an object input"):
            await add_tool.call([1, 2])

    @pytest.mark.asyncio
    async def test_validation_failure(self, add_tool):
        with pytest.raises(ToolInputParsingError, match="invalid arguments"):
            await add_tool.call({"a": "not a number"})

    @pytest.mark.asyncio
    async def test_explicit_schema(self):
        class SearchArgs(BaseModel):
            query: str
            limit: int = 3

        async def search(query: str, limit: int) -> list:
            return [f"{query}-{i}" for i in range(limit)]

        tool = StructuredTool.from_function(search, args_schema=SearchArgs, description="Search")

        assert tool.args_schema is SearchArgs
        assert await tool.call({"query": "q", "limit": 2}) == ["q-0", "q-1"]


# =============================================================================
# ExceptionTool Tests
# =============================================================================

class TestExceptionTool:
    """Tests for the reserved exception tool."""

    @pytest.mark.asyncio
    async def test_echoes_input(self):
        tool = ExceptionTool()

        assert tool.name == EXCEPTION_TOOL_NAME
        assert await tool.call("Invalid or incomplete response") == "Invalid or incomplete response"
