"""Error taxonomy for workflow assembly and execution.

Build-time errors abort plan construction; no partial plan is usable.
Run-time errors abort the active run only.
"""

from __future__ import annotations


class StepflowError(Exception):
    """Base class for every error raised by stepflow."""


class BuildError(StepflowError):
    """Raised while assembling or committing a workflow."""


class DuplicateIdError(BuildError):
    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step id already registered: {step_id!r}")
        self.step_id = step_id


class DanglingStepError(BuildError):
    pass


class EmptyWorkflowError(BuildError):
    pass


class UnreachableNodeError(BuildError):
    pass


class WorkflowCommittedError(BuildError):
    pass


class RunError(StepflowError):
    """Raised (or recorded on the result) while a run executes."""


class InvalidTriggerError(RunError):
    pass


class MissingFieldError(RunError):
    def __init__(self, step_id: str, path: str) -> None:
        super().__init__(f"Field {path!r} not present on result of step {step_id!r}")
        self.step_id = step_id
        self.path = path


class ExecutorError(RunError):
    """An executor raised. The original exception is chained as ``__cause__``."""

    def __init__(self, step_id: str, attempt: int, message: str) -> None:
        super().__init__(f"Step {step_id!r} failed on attempt {attempt}: {message}")
        self.step_id = step_id
        self.attempt = attempt


class StepOutputValidationError(RunError):
    def __init__(self, step_id: str, message: str) -> None:
        super().__init__(f"Output of step {step_id!r} failed validation: {message}")
        self.step_id = step_id


class RunCancelledError(RunError):
    reason = "cancelled"


class LoopLimitExceededError(RunError):
    def __init__(self, step_id: str, limit: int) -> None:
        super().__init__(f"Loop at step {step_id!r} exceeded {limit} iterations")
        self.step_id = step_id
        self.limit = limit
