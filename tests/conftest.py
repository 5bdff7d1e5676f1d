"""Test configuration and fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from pydantic import BaseModel

from stepflow.workflow.run import RunContext
from stepflow.workflow.steps import Step


class IncrementOutput(BaseModel):
    newValue: int


class FinalOutput(BaseModel):
    status: str


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep STEPFLOW_* variables and any local .env out of the tests."""
    for name in (
        "STEPFLOW_LOG_LEVEL",
        "STEPFLOW_LOG_FORMAT",
        "STEPFLOW_DEBUG",
        "STEPFLOW_MAX_LOOP_ITERATIONS",
        "STEPFLOW_VALIDATE_OUTPUTS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Undo handler and level changes made by configure_logging()."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    stepflow_level = logging.getLogger("stepflow").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("stepflow").setLevel(stepflow_level)


@pytest.fixture
def increment_step() -> Step:
    """Provide a step adding one to its previous output (or the trigger start value)."""

    async def increment(context: RunContext) -> dict[str, int]:
        previous = context.get_step_result("increment")
        current = (
            previous["newValue"] if previous is not None else context.trigger_data["startValue"]
        )
        return {"newValue": current + 1}

    return Step(id="increment", execute=increment, output_schema=IncrementOutput)


@pytest.fixture
def final_step() -> Step:
    """Provide a terminal step."""

    async def final(_context: RunContext) -> dict[str, str]:
        return {"status": "complete"}

    return Step(id="final", execute=final, output_schema=FinalOutput, description="Final step")
