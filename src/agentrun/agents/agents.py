"""
Decision-maker interfaces consumed by the execution loop.

An agent decides what happens next: given the execution history and the run
inputs it returns either an ``AgentFinish`` or one or more ``AgentAction``
objects. Agents never execute tools and never track iterations; both belong
to the loop in ``agentrun.coordination``.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Sequence, Union

from .exceptions import AgentConfigurationError, OutputParserError
from .types import AgentAction, AgentFinish, AgentStep

logger = logging.getLogger(__name__)

FORCE_STOP_MESSAGE = "Agent stopped due to iteration limit or time limit."

PlanOutput = Union[AgentFinish, AgentAction, List[AgentAction]]
Planner = Callable[[List[AgentStep], Dict[str, Any]], Union[PlanOutput, Awaitable[PlanOutput]]]


class BaseAgent(ABC):
    """
    Abstract base class for all decision-makers.

    Attributes:
        name: Display name used in logs and status events.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or self.__class__.__name__

    @property
    def return_values(self) -> List[str]:
        """Declared output keys. The first one is the primary output."""
        return ["output"]

    @property
    def primary_output_key(self) -> str:
        return_keys = self.return_values
        return return_keys[0] if return_keys else "output"

    @property
    def input_keys(self) -> List[str]:
        """Keys that must be present in the run inputs."""
        return []

    @property
    @abstractmethod
    def action_type(self) -> Literal["single", "multi"]:
        """Whether one planning call may return several actions."""

    @abstractmethod
    async def plan(
        self,
        intermediate_steps: List[AgentStep],
        inputs: Dict[str, Any],
    ) -> PlanOutput:
        """
        Decide what to do next.

        Args:
            intermediate_steps: Steps taken so far, in production order
            inputs: The run inputs

        Returns:
            An AgentFinish, a single AgentAction, or a list of actions

        Raises:
            OutputParserError: If the underlying output cannot be parsed
        """

    async def return_stopped_response(
        self,
        early_stopping_method: str,
        intermediate_steps: List[AgentStep],
        inputs: Dict[str, Any],
    ) -> AgentFinish:
        """
        Produce the terminal value used when the loop is forcibly ended.

        Only ``"force"`` is supported; any other method is a configuration error.
        """
        if early_stopping_method == "force":
            return AgentFinish(return_values={self.primary_output_key: FORCE_STOP_MESSAGE}, log="")
        raise AgentConfigurationError(
            f"Got unsupported early_stopping_method: {early_stopping_method}",
            config_field="early_stopping_method",
            config_value=early_stopping_method,
            agent_name=self.name,
        )

    async def prepare_for_output(
        self,
        return_values: Dict[str, Any],
        intermediate_steps: List[AgentStep],
    ) -> Dict[str, Any]:
        """Additional fields merged into the final outputs. None by default."""
        return {}


class BaseSingleActionAgent(BaseAgent):
    """Agent that returns at most one action per planning call."""

    @property
    def action_type(self) -> Literal["single", "multi"]:
        return "single"


class BaseMultiActionAgent(BaseAgent):
    """Agent that may return several actions per planning call."""

    @property
    def action_type(self) -> Literal["single", "multi"]:
        return "multi"


class RunnableAgent(BaseAgent):
    """
    Agent backed by a plain planning callable.

    The callable receives ``(intermediate_steps, inputs)`` and may be sync or
    async. Its output is normalized; anything that is not an AgentFinish, an
    AgentAction or a sequence of AgentActions is reported as an
    OutputParserError.

    Example:
        def planner(steps, inputs):
            if steps:
                return AgentFinish({"output": steps[-1].observation})
            return AgentAction(tool="echo", tool_input=inputs["input"])

        agent = RunnableAgent(planner, input_keys=["input"])
    """

    def __init__(
        self,
        planner: Planner,
        name: Optional[str] = None,
        multi_action: bool = False,
        return_values: Optional[Sequence[str]] = None,
        input_keys: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(name=name or getattr(planner, "__name__", None))
        if not callable(planner):
            raise AgentConfigurationError(
                "RunnableAgent requires a callable planner",
                config_field="planner",
                config_value=planner,
            )
        self.planner = planner
        self.multi_action = multi_action
        self._return_values = list(return_values) if return_values else ["output"]
        self._input_keys = list(input_keys) if input_keys else []

    @property
    def return_values(self) -> List[str]:
        return self._return_values

    @property
    def input_keys(self) -> List[str]:
        return self._input_keys

    @property
    def action_type(self) -> Literal["single", "multi"]:
        return "multi" if self.multi_action else "single"

    async def plan(
        self,
        intermediate_steps: List[AgentStep],
        inputs: Dict[str, Any],
    ) -> PlanOutput:
        result = self.planner(list(intermediate_steps), inputs)
        if inspect.isawaitable(result):
            result = await result
        return self._normalize(result)

    def _normalize(self, result: Any) -> PlanOutput:
        if isinstance(result, (AgentFinish, AgentAction)):
            return result

        if isinstance(result, (list, tuple)):
            actions = list(result)
            if not actions or not all(isinstance(a, AgentAction) for a in actions):
                raise OutputParserError(
                    f"Planner returned an invalid action list: {result!r}",
                    agent_name=self.name,
                )
            if len(actions) > 1 and not self.multi_action:
                raise OutputParserError(
                    f"Single-action agent returned {len(actions)} actions",
                    agent_name=self.name,
                )
            return actions

        logger.debug(f"Agent {self.name} planner returned {type(result).__name__}: {result!r}")
        raise OutputParserError(
            f"Planner returned unsupported output type {type(result).__name__}",
            llm_output=str(result),
            agent_name=self.name,
        )
