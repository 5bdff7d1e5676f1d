#!/usr/bin/env python3
"""Counter workflow example.

Increments a counter until it reaches the target, then runs a final step:

* build the workflow with a `step().until().then().commit()` chain
* create a run and start it with trigger data
* print the results

Settings (log level, loop cap) are read from `STEPFLOW_*` environment
variables or `.env`.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from pydantic import BaseModel

from stepflow import EngineSettings, RunContext, Step, Workflow


class CounterTrigger(BaseModel):
    target: int
    startValue: int


class IncrementOutput(BaseModel):
    newValue: int


class FinalOutput(BaseModel):
    status: str


async def increment(context: RunContext) -> dict[str, int]:
    previous = context.get_step_result("increment")
    if previous is not None:
        current = previous["newValue"]
    else:
        current = context.trigger_data.get("startValue", 0)
    new_value = current + 1
    print(f"Step A: {new_value}")
    return {"newValue": new_value}


async def final(_context: RunContext) -> dict[str, str]:
    print("Step B: Final")
    return {"status": "complete"}


def build_workflow(target: int, settings: EngineSettings | None = None) -> Workflow:
    increment_step = Step(
        id="increment",
        description="Increments the current value by 1",
        execute=increment,
        output_schema=IncrementOutput,
    )
    final_step = Step(
        id="final",
        description="Final step",
        execute=final,
        output_schema=FinalOutput,
    )

    workflow = Workflow("counter-workflow", trigger_schema=CounterTrigger, settings=settings)
    (
        workflow.step(increment_step)
        .until(
            {"ref": {"step": increment_step, "path": "newValue"}, "query": {"$gte": target}},
            increment_step,
        )
        .then(final_step)
        .commit()
    )
    return workflow


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the counter workflow example.")
    parser.add_argument("--target", type=int, default=10, help="Value to count up to")
    parser.add_argument("--start-value", type=int, default=0, help="Initial counter value")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    settings = EngineSettings()
    settings.setup_logging()

    workflow = build_workflow(args.target, settings=settings)
    run = workflow.create_run()
    print(f"Starting workflow run: {run.run_id}")

    result = await run.start({"target": args.target, "startValue": args.start_value})

    print("Exit")
    print(f"Results: {json.dumps(result.results)}")
    return 0 if result.ok else 1


def main(argv: Sequence[str] | None = None) -> int:
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
