"""Workflow domain concepts.

This package introduces first-class types for:
- Steps and the per-workflow step registry
- Declarative loop conditions
- The chained builder and the immutable plan it commits
- Runs, their context and an explicit run state machine
"""

from stepflow.workflow.builder import PlanNode, Workflow, WorkflowPlan
from stepflow.workflow.conditions import (
    AllOf,
    AnyOf,
    Condition,
    LoopKind,
    Operator,
    Query,
    StepRef,
    evaluate,
)
from stepflow.workflow.errors import (
    BuildError,
    DanglingStepError,
    DuplicateIdError,
    EmptyWorkflowError,
    ExecutorError,
    InvalidTriggerError,
    LoopLimitExceededError,
    MissingFieldError,
    RunCancelledError,
    RunError,
    StepflowError,
    StepOutputValidationError,
    UnreachableNodeError,
    WorkflowCommittedError,
)
from stepflow.workflow.events import RunEvent, RunEventType
from stepflow.workflow.run import Run, RunContext, RunResult
from stepflow.workflow.state_machine import IllegalTransitionError, RunStatus
from stepflow.workflow.steps import TRIGGER_KEY, Step, StepRegistry

__all__ = [
    "AllOf",
    "AnyOf",
    "BuildError",
    "Condition",
    "DanglingStepError",
    "DuplicateIdError",
    "EmptyWorkflowError",
    "ExecutorError",
    "IllegalTransitionError",
    "InvalidTriggerError",
    "LoopKind",
    "LoopLimitExceededError",
    "MissingFieldError",
    "Operator",
    "PlanNode",
    "Query",
    "Run",
    "RunCancelledError",
    "RunContext",
    "RunError",
    "RunEvent",
    "RunEventType",
    "RunResult",
    "RunStatus",
    "Step",
    "StepOutputValidationError",
    "StepRef",
    "StepRegistry",
    "StepflowError",
    "TRIGGER_KEY",
    "UnreachableNodeError",
    "Workflow",
    "WorkflowCommittedError",
    "WorkflowPlan",
    "evaluate",
]
