"""Run engine: executes a committed plan for one trigger payload.

The walk is an index-based cursor over the plan's node array. Loop-back
edges move the cursor backwards; no recursion is involved, so long-running
loops do not grow the call stack and cancellation is a check before each
cursor move.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from .conditions import LoopKind, evaluate
from .errors import (
    ExecutorError,
    InvalidTriggerError,
    LoopLimitExceededError,
    RunCancelledError,
    RunError,
    StepOutputValidationError,
)
from .events import RunEvent, RunEventType, RunWatcher
from .state_machine import RunSnapshot, RunStatus, advance, transition
from .steps import TRIGGER_KEY, Step, step_id_of

if TYPE_CHECKING:
    from .builder import PlanNode, WorkflowPlan

logger = logging.getLogger(__name__)


class RunContext:
    """Results accumulated by a single run.

    Each step id maps to its most recent output; re-executed loop steps
    replace their previous value.
    """

    def __init__(self, run_id: str, trigger_data: Mapping[str, Any]) -> None:
        self.run_id = run_id
        self._results: dict[str, Any] = {TRIGGER_KEY: dict(trigger_data)}
        self._counts: dict[str, int] = {}

    @property
    def trigger_data(self) -> dict[str, Any]:
        return self._results[TRIGGER_KEY]

    @property
    def results(self) -> dict[str, Any]:
        """Step outputs, without the trigger payload."""

        return {k: v for k, v in self._results.items() if k != TRIGGER_KEY}

    @property
    def step_counts(self) -> dict[str, int]:
        return dict(self._counts)

    def get_step_result(self, step: Step | str) -> Any | None:
        return self._results.get(step_id_of(step))

    def execution_count(self, step: Step | str) -> int:
        return self._counts.get(step_id_of(step), 0)

    def record(self, step_id: str, value: Any) -> None:
        self._results[step_id] = value
        self._counts[step_id] = self._counts.get(step_id, 0) + 1


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    status: RunStatus
    results: dict[str, Any]
    step_counts: dict[str, int] = field(default_factory=dict)
    error: RunError | None = None

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "run_id": self.run_id,
            "status": self.status.value,
            "results": self.results,
            "step_counts": self.step_counts,
        }
        if self.error is not None:
            out["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        return out


class Run:
    """One execution of a committed plan.

    A run starts at most once. Retrying means creating a fresh run from the
    same plan.
    """

    def __init__(self, plan: WorkflowPlan, run_id: str | None = None) -> None:
        self.plan = plan
        self.run_id = run_id or uuid.uuid4().hex
        self._snapshot = RunSnapshot(status=RunStatus.PENDING)
        self._watchers: list[RunWatcher] = []
        self._cancel_requested = False

    @property
    def status(self) -> RunStatus:
        return self._snapshot.status

    @property
    def snapshot(self) -> RunSnapshot:
        return self._snapshot

    def watch(self, watcher: RunWatcher) -> Callable[[], None]:
        """Register a watcher; returns a callable that unregisters it."""

        self._watchers.append(watcher)

        def _unwatch() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return _unwatch

    def cancel(self) -> None:
        """Request cancellation. Honoured before the next step begins."""

        if not self._snapshot.finished:
            self._cancel_requested = True

    def _emit(self, type_: RunEventType, step_id: str | None = None, **payload: object) -> None:
        event = RunEvent(type=type_, run_id=self.run_id, step_id=step_id, payload=payload)
        for watcher in list(self._watchers):
            try:
                watcher(event)
            except Exception:
                logger.exception(
                    "Run watcher failed", extra={"run_id": self.run_id, "event": type_.value}
                )

    def _validate_trigger(
        self, trigger_data: Mapping[str, Any] | BaseModel | None
    ) -> dict[str, Any]:
        schema = self.plan.trigger_schema
        if schema is None:
            if trigger_data is None:
                return {}
            if isinstance(trigger_data, BaseModel):
                return trigger_data.model_dump()
            if not isinstance(trigger_data, Mapping):
                raise InvalidTriggerError(
                    f"Trigger data for {self.plan.name!r} must be a mapping, "
                    f"got {type(trigger_data).__name__}"
                )
            return dict(trigger_data)
        try:
            return schema.model_validate(trigger_data).model_dump()
        except ValidationError as e:
            raise InvalidTriggerError(f"Invalid trigger data for {self.plan.name!r}: {e}") from e

    async def start(
        self, trigger_data: Mapping[str, Any] | BaseModel | None = None
    ) -> RunResult:
        """Validate the trigger payload and walk the plan to completion.

        Raises ``InvalidTriggerError`` before any step executes. Failures
        during the walk are returned on the result together with the partial
        step outputs.
        """

        running = transition(current=self._snapshot, to=RunStatus.RUNNING)
        try:
            data = self._validate_trigger(trigger_data)
        except InvalidTriggerError as e:
            self._snapshot = transition(current=self._snapshot, to=RunStatus.FAILED)
            logger.warning(
                "Run rejected trigger data",
                extra={"run_id": self.run_id, "workflow": self.plan.name},
            )
            self._emit(RunEventType.RUN_FAILED, error=str(e))
            raise

        self._snapshot = running
        context = RunContext(self.run_id, data)
        logger.info("Run started", extra={"run_id": self.run_id, "workflow": self.plan.name})
        self._emit(RunEventType.RUN_STARTED, trigger=context.trigger_data)

        try:
            await self._walk(context)
        except RunError as e:
            return self._fail(context, e)
        except asyncio.CancelledError:
            self._fail(context, RunCancelledError(f"Run {self.run_id} was cancelled"))
            raise

        self._snapshot = transition(
            current=RunSnapshot(status=self._snapshot.status), to=RunStatus.COMPLETED
        )
        logger.info(
            "Run completed",
            extra={
                "run_id": self.run_id,
                "workflow": self.plan.name,
                "step_counts": context.step_counts,
            },
        )
        self._emit(RunEventType.RUN_COMPLETED, results=context.results)
        return RunResult(
            run_id=self.run_id,
            status=RunStatus.COMPLETED,
            results=context.results,
            step_counts=context.step_counts,
        )

    async def _walk(self, context: RunContext) -> None:
        pending: deque[int] = deque()
        queued: set[int] = set()
        loop_counts: dict[int, int] = {}
        cursor: int | None = self.plan.head

        while cursor is not None:
            if self._cancel_requested:
                raise RunCancelledError(f"Run {self.run_id} was cancelled")
            self._snapshot = advance(current=self._snapshot, cursor=cursor)

            node = self.plan.nodes[cursor]
            await self._execute(node.step, context)
            cursor = self._next_cursor(cursor, node, context, pending, queued, loop_counts)

    async def _execute(self, step: Step, context: RunContext) -> None:
        attempt = context.execution_count(step) + 1
        self._emit(RunEventType.STEP_STARTED, step.id, attempt=attempt)
        logger.debug(
            "Executing step", extra={"run_id": self.run_id, "step": step.id, "attempt": attempt}
        )

        try:
            value = step.execute(context)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.warning(
                "Step executor failed",
                extra={"run_id": self.run_id, "step": step.id, "attempt": attempt},
            )
            raise ExecutorError(step.id, attempt, str(e) or type(e).__name__) from e

        context.record(step.id, self._check_output(step, value))
        self._emit(RunEventType.STEP_COMPLETED, step.id, attempt=attempt)

    def _check_output(self, step: Step, value: Any) -> Any:
        if step.output_schema is not None and self.plan.validate_outputs:
            try:
                return step.output_schema.model_validate(value).model_dump()
            except ValidationError as e:
                raise StepOutputValidationError(step.id, str(e)) from e
        if isinstance(value, BaseModel):
            return value.model_dump()
        return value

    def _next_cursor(
        self,
        cursor: int,
        node: PlanNode,
        context: RunContext,
        pending: deque[int],
        queued: set[int],
        loop_counts: dict[int, int],
    ) -> int | None:
        if node.loop_condition is not None and node.loop_target is not None:
            count = loop_counts.get(cursor, 0) + 1
            holds = evaluate(node.loop_condition, context)
            exit_loop = holds if node.loop_kind is not LoopKind.WHILE else not holds
            if not exit_loop:
                limit = self.plan.max_loop_iterations
                if limit is not None and count >= limit:
                    raise LoopLimitExceededError(node.step.id, limit)
                loop_counts[cursor] = count
                self._emit(RunEventType.LOOP_CONTINUED, node.step.id, iteration=count)
                return node.loop_target
            loop_counts.pop(cursor, None)

        # A branch head runs once per walk, however often its anchor is re-entered.
        for branch in node.branches:
            if branch not in queued:
                queued.add(branch)
                pending.append(branch)
        if node.next is not None:
            return node.next
        return pending.popleft() if pending else None

    def _fail(self, context: RunContext, error: RunError) -> RunResult:
        self._snapshot = transition(current=self._snapshot, to=RunStatus.FAILED)
        logger.warning(
            "Run failed",
            extra={
                "run_id": self.run_id,
                "workflow": self.plan.name,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        self._emit(RunEventType.RUN_FAILED, error=str(error))
        return RunResult(
            run_id=self.run_id,
            status=RunStatus.FAILED,
            results=context.results,
            step_counts=context.step_counts,
            error=error,
        )
