"""Unit tests for step definitions and the step registry."""

from __future__ import annotations

import pytest

from stepflow.workflow.errors import DuplicateIdError
from stepflow.workflow.run import RunContext
from stepflow.workflow.steps import TRIGGER_KEY, Step, StepRegistry


def _noop(_context: RunContext) -> None:
    return None


def test_define_step_registers_and_returns_step() -> None:
    registry = StepRegistry()
    step = registry.define_step("fetch", _noop, description="Fetch things")

    assert isinstance(step, Step)
    assert step.description == "Fetch things"
    assert "fetch" in registry
    assert registry.get("fetch") is step
    assert len(registry) == 1


def test_define_step_rejects_duplicate_ids() -> None:
    registry = StepRegistry()
    registry.define_step("fetch", _noop)

    with pytest.raises(DuplicateIdError) as exc_info:
        registry.define_step("fetch", _noop)
    assert exc_info.value.step_id == "fetch"


def test_registering_the_same_step_twice_is_a_noop() -> None:
    registry = StepRegistry()
    step = Step(id="loop", execute=_noop)

    assert registry.register(step) is step
    assert registry.register(step) is step
    assert len(registry) == 1


def test_trigger_id_is_reserved() -> None:
    with pytest.raises(DuplicateIdError):
        StepRegistry().define_step(TRIGGER_KEY, _noop)


def test_step_requires_non_empty_id() -> None:
    with pytest.raises(ValueError):
        Step(id=" ", execute=_noop)


def test_steps_compare_by_id() -> None:
    assert Step(id="a", execute=_noop) == Step(id="a", execute=lambda _c: 1)
    assert Step(id="a", execute=_noop) != Step(id="b", execute=_noop)
