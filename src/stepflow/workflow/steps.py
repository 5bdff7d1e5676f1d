from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel

from .errors import DuplicateIdError

if TYPE_CHECKING:
    from .run import RunContext

TRIGGER_KEY = "trigger"


class StepExecutor(Protocol):
    """A unit of work invoked with the run context.

    May be a coroutine function or a plain callable. Loop steps are invoked
    repeatedly, so executors must tolerate re-invocation.
    """

    def __call__(self, context: RunContext) -> Awaitable[Any] | Any: ...


@dataclass(frozen=True, slots=True)
class Step:
    id: str
    execute: StepExecutor = field(compare=False)
    output_schema: type[BaseModel] | None = field(default=None, compare=False)
    description: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("Step id must be a non-empty string")


def step_id_of(step: Step | str) -> str:
    return step.id if isinstance(step, Step) else step


class StepRegistry:
    """Step definitions owned by a single workflow."""

    def __init__(self) -> None:
        self._steps: dict[str, Step] = {}

    def __contains__(self, step: object) -> bool:
        if isinstance(step, (Step, str)):
            return step_id_of(step) in self._steps
        return False

    def __len__(self) -> int:
        return len(self._steps)

    def get(self, step_id: str) -> Step | None:
        return self._steps.get(step_id)

    def register(self, step: Step) -> Step:
        """Register an existing step.

        Registering the same Step object again is a no-op. A different step
        carrying an already used id is rejected.
        """

        if step.id == TRIGGER_KEY:
            raise DuplicateIdError(step.id)
        existing = self._steps.get(step.id)
        if existing is not None:
            if existing is step:
                return step
            raise DuplicateIdError(step.id)
        self._steps[step.id] = step
        return step

    def define_step(
        self,
        id: str,  # noqa: A002 (mirrors Step.id)
        execute: Callable[[RunContext], Awaitable[Any] | Any],
        output_schema: type[BaseModel] | None = None,
        *,
        description: str | None = None,
    ) -> Step:
        return self.register(
            Step(id=id, execute=execute, output_schema=output_schema, description=description)
        )
