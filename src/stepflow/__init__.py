"""stepflow: cyclic step-workflow execution.

Workflows are assembled with chained calls, frozen into immutable plans
with ``commit()``, and executed by asyncio runs that re-enter loop steps
until a declarative condition over prior step outputs is satisfied.
"""

__version__ = "0.1.0"

from stepflow.config import EngineSettings
from stepflow.workflow import (
    Condition,
    Run,
    RunContext,
    RunResult,
    RunStatus,
    Step,
    StepRef,
    Query,
    Workflow,
    WorkflowPlan,
)

__all__ = [
    "__version__",
    "Condition",
    "EngineSettings",
    "Query",
    "Run",
    "RunContext",
    "RunResult",
    "RunStatus",
    "Step",
    "StepRef",
    "Workflow",
    "WorkflowPlan",
]
