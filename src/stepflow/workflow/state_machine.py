from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[RunStatus, set[RunStatus]] = {
    RunStatus.PENDING: {RunStatus.RUNNING, RunStatus.FAILED},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


class IllegalTransitionError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Where a run currently stands.

    ``cursor`` is the index of the plan node about to execute, or None when
    the walk has not started or has finished.
    """

    status: RunStatus
    cursor: int | None = None

    @property
    def finished(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"status": self.status.value}
        if self.cursor is not None:
            out["cursor"] = self.cursor
        return out


def transition(*, current: RunSnapshot, to: RunStatus) -> RunSnapshot:
    allowed = ALLOWED_TRANSITIONS.get(current.status, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.status.value} -> {to.value}")
    return RunSnapshot(status=to, cursor=current.cursor)


def advance(*, current: RunSnapshot, cursor: int | None) -> RunSnapshot:
    """Move the walk cursor. Only a running run may advance."""

    if current.status is not RunStatus.RUNNING:
        raise IllegalTransitionError(f"Cannot advance cursor while {current.status.value}")
    return RunSnapshot(status=current.status, cursor=cursor)
