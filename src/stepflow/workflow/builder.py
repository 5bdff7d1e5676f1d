"""Assemble workflows with chained calls and freeze them into plans.

    workflow = Workflow("counter-workflow", trigger_schema=CounterTrigger)
    (
        workflow.step(increment)
        .until({"ref": {"step": increment, "path": "newValue"}, "query": {"$gte": 10}}, increment)
        .then(final)
        .commit()
    )

The builder edits a mutable draft graph (an arena of nodes addressed by
index). ``commit()`` validates the draft and produces an immutable
``WorkflowPlan``; the draft is dropped at that point.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from stepflow.config import EngineSettings

from .conditions import AnyCondition, LoopKind, as_condition, referenced_steps
from .errors import (
    BuildError,
    DanglingStepError,
    DuplicateIdError,
    EmptyWorkflowError,
    UnreachableNodeError,
    WorkflowCommittedError,
)
from .run import Run
from .steps import TRIGGER_KEY, Step, StepRegistry, step_id_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlanNode:
    """A committed node. Terminal exactly when ``next`` is None."""

    step: Step
    next: int | None = None
    branches: tuple[int, ...] = ()
    loop_condition: AnyCondition | None = None
    loop_target: int | None = None
    loop_kind: LoopKind | None = None

    @property
    def terminal(self) -> bool:
        return self.next is None

    @property
    def is_loop(self) -> bool:
        return self.loop_condition is not None

    def successors(self) -> Iterator[int]:
        if self.next is not None:
            yield self.next
        yield from self.branches
        if self.loop_target is not None:
            yield self.loop_target


@dataclass(frozen=True, slots=True)
class WorkflowPlan:
    name: str
    nodes: tuple[PlanNode, ...]
    head: int = 0
    trigger_schema: type[BaseModel] | None = None
    max_loop_iterations: int | None = None
    validate_outputs: bool = True
    _index: Mapping[str, int] = field(default_factory=dict, repr=False, compare=False)

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(node.step.id for node in self.nodes)

    def index_of(self, step: Step | str) -> int:
        return self._index[step_id_of(step)]

    def node_for(self, step: Step | str) -> PlanNode:
        return self.nodes[self.index_of(step)]

    def create_run(self, run_id: str | None = None) -> Run:
        return Run(self, run_id=run_id)


@dataclass(slots=True)
class _DraftNode:
    step: Step
    next: int | None = None
    branches: list[int] = field(default_factory=list)
    loop_condition: AnyCondition | None = None
    loop_target: int | None = None
    loop_kind: LoopKind | None = None

    def freeze(self) -> PlanNode:
        return PlanNode(
            step=self.step,
            next=self.next,
            branches=tuple(self.branches),
            loop_condition=self.loop_condition,
            loop_target=self.loop_target,
            loop_kind=self.loop_kind,
        )


class Workflow:
    """Mutable workflow builder.

    Each step occupies exactly one node; loops re-enter an existing node
    rather than adding a copy of it.
    """

    def __init__(
        self,
        name: str,
        trigger_schema: type[BaseModel] | None = None,
        *,
        settings: EngineSettings | None = None,
        max_loop_iterations: int | None = None,
    ) -> None:
        self.name = name
        self.trigger_schema = trigger_schema
        self.settings = settings or EngineSettings()
        self._max_loop_iterations = (
            max_loop_iterations
            if max_loop_iterations is not None
            else self.settings.max_loop_iterations
        )
        self.registry = StepRegistry()
        self._nodes: list[_DraftNode] = []
        self._index: dict[str, int] = {}
        self._tail: int | None = None
        self._open_branch: int | None = None
        self._plan: WorkflowPlan | None = None

    @property
    def committed(self) -> bool:
        return self._plan is not None

    def _ensure_mutable(self) -> None:
        if self._plan is not None:
            raise WorkflowCommittedError(f"Workflow {self.name!r} is already committed")

    def _lookup(self, step: Step | str, *, action: str) -> int:
        idx = self._index.get(step_id_of(step))
        if idx is None:
            raise DanglingStepError(
                f"{action}() references step {step_id_of(step)!r} which is not in the workflow"
            )
        return idx

    def _append(self, step: Step) -> Workflow:
        if step.id in self._index:
            raise DuplicateIdError(step.id)
        self.registry.register(step)

        idx = len(self._nodes)
        self._nodes.append(_DraftNode(step=step))
        self._index[step.id] = idx

        if self._tail is not None:
            pred = self._nodes[self._tail]
            if pred.next is None:
                pred.next = idx
            else:
                pred.branches.append(idx)

        self._tail = idx
        self._open_branch = None
        return self

    def step(self, step: Step) -> Workflow:
        """Append ``step`` after the current tail (or as the head)."""

        self._ensure_mutable()
        return self._append(step)

    def then(self, step: Step) -> Workflow:
        self._ensure_mutable()
        if self._tail is None:
            raise DanglingStepError(f"then({step.id!r}) called before any step was added")
        return self._append(step)

    def until(self, condition: AnyCondition | Mapping[str, Any], target: Step | str) -> Workflow:
        """Repeat ``target`` until ``condition`` holds, then continue."""

        return self._loop(condition, target, LoopKind.UNTIL)

    def while_(self, condition: AnyCondition | Mapping[str, Any], target: Step | str) -> Workflow:
        """Repeat ``target`` while ``condition`` holds, then continue."""

        return self._loop(condition, target, LoopKind.WHILE)

    def _loop(
        self,
        condition: AnyCondition | Mapping[str, Any],
        target: Step | str,
        kind: LoopKind,
    ) -> Workflow:
        self._ensure_mutable()
        if self._tail is None:
            raise DanglingStepError(f"{kind.value}() called before any step was added")
        target_idx = self._lookup(target, action=kind.value)

        node = self._nodes[self._tail]
        if node.loop_condition is not None:
            raise BuildError(f"Step {node.step.id!r} already has a loop condition")
        node.loop_condition = as_condition(condition)
        node.loop_target = target_idx
        node.loop_kind = kind
        return self

    def after(self, step: Step | str) -> Workflow:
        """Continue assembling from a previously added step."""

        self._ensure_mutable()
        idx = self._lookup(step, action="after")
        self._tail = idx
        self._open_branch = idx
        return self

    def commit(self) -> WorkflowPlan:
        if self._plan is not None:
            return self._plan

        if not self._nodes:
            raise EmptyWorkflowError(f"Workflow {self.name!r} has no steps")
        if self._open_branch is not None:
            step_id = self._nodes[self._open_branch].step.id
            raise UnreachableNodeError(f"after({step_id!r}) was never linked to a step")

        nodes = tuple(draft.freeze() for draft in self._nodes)
        self._validate(nodes)

        self._plan = WorkflowPlan(
            name=self.name,
            nodes=nodes,
            head=0,
            trigger_schema=self.trigger_schema,
            max_loop_iterations=self._max_loop_iterations,
            validate_outputs=self.settings.validate_outputs,
            _index=MappingProxyType(dict(self._index)),
        )
        self._nodes = []
        self._tail = None
        logger.debug(
            "Workflow committed",
            extra={"workflow": self.name, "steps": list(self._plan.step_ids)},
        )
        return self._plan

    @staticmethod
    def _validate(nodes: tuple[PlanNode, ...]) -> None:
        seen = {0}
        queue = deque([0])
        while queue:
            for succ in nodes[queue.popleft()].successors():
                if succ not in seen:
                    seen.add(succ)
                    queue.append(succ)
        unreachable = [nodes[i].step.id for i in range(len(nodes)) if i not in seen]
        if unreachable:
            raise UnreachableNodeError(f"Steps not reachable from the head: {unreachable}")

        known = {node.step.id for node in nodes} | {TRIGGER_KEY}
        for node in nodes:
            if node.loop_condition is None:
                continue
            for ref in referenced_steps(node.loop_condition):
                if ref not in known:
                    raise DanglingStepError(
                        f"Loop condition on {node.step.id!r} references unknown step {ref!r}"
                    )

    def create_run(self, run_id: str | None = None) -> Run:
        """Commit (if needed) and create a pending run."""

        return self.commit().create_run(run_id=run_id)
