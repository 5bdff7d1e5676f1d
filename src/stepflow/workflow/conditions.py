"""Declarative loop conditions.

Conditions are plain data rather than callables so that a plan can be
inspected and validated before it runs. The literal form mirrors a query
document::

    {"ref": {"step": increment, "path": "newValue"}, "query": {"$gte": 10}}
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import MissingFieldError
from .steps import Step, step_id_of

if TYPE_CHECKING:
    from .run import RunContext

logger = logging.getLogger(__name__)

_MISSING = object()


class LoopKind(str, Enum):
    UNTIL = "until"
    WHILE = "while"


class Operator(str, Enum):
    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"
    IN = "$in"
    NIN = "$nin"


_ORDERING: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.GT: operator.gt,
    Operator.GTE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LTE: operator.le,
}


@dataclass(frozen=True, slots=True)
class StepRef:
    step: str
    path: str

    def __init__(self, step: Step | str, path: str) -> None:
        object.__setattr__(self, "step", step_id_of(step))
        object.__setattr__(self, "path", path)


@dataclass(frozen=True, slots=True)
class Query:
    operator: Operator
    operand: Any

    def apply(self, value: Any) -> bool:
        op = self.operator
        try:
            if op is Operator.EQ:
                return bool(value == self.operand)
            if op is Operator.NE:
                return bool(value != self.operand)
            if op is Operator.IN:
                return value in self.operand
            if op is Operator.NIN:
                return value not in self.operand
            return bool(_ORDERING[op](value, self.operand))
        except TypeError:
            logger.debug(
                "Incomparable values in condition",
                extra={"operator": op.value, "value": repr(value), "operand": repr(self.operand)},
            )
            return False


@dataclass(frozen=True, slots=True)
class Condition:
    ref: StepRef
    query: Query

    @staticmethod
    def from_mapping(obj: Mapping[str, Any]) -> AnyCondition:
        """Build a condition from its literal form.

        ``{"and": [...]}`` and ``{"or": [...]}`` build composite conditions.
        """

        if "and" in obj:
            return AllOf(tuple(_coerce(c) for c in obj["and"]))
        if "or" in obj:
            return AnyOf(tuple(_coerce(c) for c in obj["or"]))

        ref_raw = obj.get("ref")
        query_raw = obj.get("query")
        if not isinstance(ref_raw, Mapping) or not isinstance(query_raw, Mapping):
            raise ValueError("Condition mapping requires 'ref' and 'query' mappings")
        if len(query_raw) != 1:
            raise ValueError(f"Condition query must hold exactly one operator: {dict(query_raw)!r}")

        ((op_raw, operand),) = query_raw.items()
        try:
            op = Operator(op_raw)
        except ValueError:
            raise ValueError(f"Unsupported condition operator: {op_raw!r}") from None
        return Condition(
            ref=StepRef(step=ref_raw["step"], path=str(ref_raw["path"])),
            query=Query(operator=op, operand=operand),
        )


@dataclass(frozen=True, slots=True)
class AllOf:
    conditions: tuple[AnyCondition, ...]


@dataclass(frozen=True, slots=True)
class AnyOf:
    conditions: tuple[AnyCondition, ...]


AnyCondition = Condition | AllOf | AnyOf


def _coerce(obj: AnyCondition | Mapping[str, Any]) -> AnyCondition:
    if isinstance(obj, (Condition, AllOf, AnyOf)):
        return obj
    return Condition.from_mapping(obj)


def as_condition(obj: AnyCondition | Mapping[str, Any]) -> AnyCondition:
    """Accept a condition object or its literal mapping form."""

    return _coerce(obj)


def referenced_steps(condition: AnyCondition) -> Iterator[str]:
    if isinstance(condition, Condition):
        yield condition.ref.step
        return
    for child in condition.conditions:
        yield from referenced_steps(child)


def extract_path(value: Any, path: str) -> Any:
    """Resolve a dotted path over mappings and attributes.

    Raises ``KeyError`` when any segment is absent.
    """

    current = value
    for part in path.split(".") if path else []:
        if isinstance(current, Mapping):
            if part not in current:
                raise KeyError(part)
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                raise KeyError(part)
            current = current[index]
        else:
            attr = getattr(current, part, _MISSING)
            if attr is _MISSING:
                raise KeyError(part)
            current = attr
    return current


def evaluate(condition: AnyCondition, context: RunContext) -> bool:
    """Evaluate a condition against the results accumulated in a run.

    A step that has not produced output yet makes the condition false, so a
    loop whose condition references its own step always runs at least once.
    """

    if isinstance(condition, AllOf):
        return all(evaluate(c, context) for c in condition.conditions)
    if isinstance(condition, AnyOf):
        return any(evaluate(c, context) for c in condition.conditions)

    result = context.get_step_result(condition.ref.step)
    if result is None:
        return False
    try:
        value = extract_path(result, condition.ref.path)
    except KeyError:
        raise MissingFieldError(condition.ref.step, condition.ref.path) from None
    return condition.query.apply(value)
