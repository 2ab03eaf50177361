"""
ComplyWatch Policy Conditions

Pure condition logic: type/operator resolution, value comparison and
grouped boolean evaluation.

Conditions are split into groups of consecutive members that share a logical
operator. An AND group is true when all members are true; an OR group when
any member is. A policy is satisfied when at least one group is true, so

    [A (AND), B (AND), C (OR), D (OR)]  ==  (A and B) or (C or D)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from complywatch.models.policy import (
    CONDITION_TYPE_ALIASES,
    OPERATOR_ALIASES,
    ComparisonOperator,
    ConditionType,
    LogicalOperator,
    PolicyCondition,
)
from complywatch.utils.helpers import split_csv, to_number

logger = logging.getLogger(__name__)


def resolve_condition_type(name: str) -> Optional[ConditionType]:
    key = str(name or "").strip().lower()
    if key in CONDITION_TYPE_ALIASES:
        return CONDITION_TYPE_ALIASES[key]
    try:
        return ConditionType(key)
    except ValueError:
        return None


def resolve_operator(name: str) -> Optional[ComparisonOperator]:
    key = str(name or "").strip().lower()
    if key in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[key]
    try:
        return ComparisonOperator(key)
    except ValueError:
        return None


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip().lower()


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _numeric(actual: Any, expected: Any, test: Callable[[float, float], bool]) -> bool:
    a, e = to_number(actual), to_number(expected)
    if a is None or e is None:
        return False
    return test(a, e)


def compare_values(actual: Any, operator: ComparisonOperator, expected: Any) -> bool:
    """
    Compare an actual value against a configured one.

    Numeric operators fail closed on non-numeric input; text comparisons are
    case-insensitive; in/not_in take a comma-separated list.
    """
    if operator == ComparisonOperator.EXISTS:
        return not _is_empty(actual)
    if operator == ComparisonOperator.NOT_EXISTS:
        return _is_empty(actual)
    if actual is None:
        return False

    if operator in (ComparisonOperator.EQUALS, ComparisonOperator.NOT_EQUALS):
        a, e = to_number(actual), to_number(expected)
        if a is not None and e is not None:
            equal = a == e
        else:
            equal = _as_text(actual) == _as_text(expected)
        return equal if operator == ComparisonOperator.EQUALS else not equal

    numeric_tests = {
        ComparisonOperator.GREATER_THAN: lambda a, e: a > e,
        ComparisonOperator.LESS_THAN: lambda a, e: a < e,
        ComparisonOperator.GREATER_EQUAL: lambda a, e: a >= e,
        ComparisonOperator.LESS_EQUAL: lambda a, e: a <= e,
    }
    if operator in numeric_tests:
        return _numeric(actual, expected, numeric_tests[operator])

    if operator == ComparisonOperator.CONTAINS:
        return _as_text(expected) in _as_text(actual)
    if operator == ComparisonOperator.NOT_CONTAINS:
        return _as_text(expected) not in _as_text(actual)

    if operator == ComparisonOperator.IN:
        return _as_text(actual) in split_csv(expected)
    if operator == ComparisonOperator.NOT_IN:
        return _as_text(actual) not in split_csv(expected)

    logger.warning(f"Unhandled operator: {operator}")
    return False


@dataclass
class ConditionGroup:
    operator: LogicalOperator
    members: List[PolicyCondition] = field(default_factory=list)


def group_conditions(conditions: Sequence[PolicyCondition]) -> List[ConditionGroup]:
    """Split ordered conditions into maximal runs sharing a logical operator."""
    groups: List[ConditionGroup] = []
    for condition in sorted(conditions, key=lambda c: c.condition_order or 0):
        operator = LogicalOperator.parse(condition.logical_operator)
        if not groups or groups[-1].operator != operator:
            groups.append(ConditionGroup(operator))
        groups[-1].members.append(condition)
    return groups


ConditionPredicate = Callable[[PolicyCondition], Awaitable[bool]]


async def evaluate_group(group: ConditionGroup, predicate: ConditionPredicate) -> bool:
    """Evaluate one group, stopping at the first deciding member."""
    if group.operator == LogicalOperator.AND:
        for condition in group.members:
            if not await predicate(condition):
                return False
        return True

    for condition in group.members:
        if await predicate(condition):
            return True
    return False


async def evaluate_conditions(conditions: Sequence[PolicyCondition], predicate: ConditionPredicate) -> bool:
    """
    True when any condition group holds. A policy without conditions always
    fires.
    """
    if not conditions:
        return True
    for group in group_conditions(conditions):
        if await evaluate_group(group, predicate):
            return True
    return False
