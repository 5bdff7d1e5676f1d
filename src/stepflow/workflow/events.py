from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class RunEventType(str, Enum):
    RUN_STARTED = "run_started"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    LOOP_CONTINUED = "loop_continued"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"


@dataclass(frozen=True, slots=True)
class RunEvent:
    """A signal emitted by a run as it walks its plan.

    Watchers observe events; they never influence control flow.
    """

    type: RunEventType
    run_id: str
    step_id: str | None = None
    payload: dict[str, object] = field(default_factory=dict)


RunWatcher = Callable[[RunEvent], None]
