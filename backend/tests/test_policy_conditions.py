"""
ComplyWatch Policy Condition Tests

Tests for value comparison, grouping and grouped boolean evaluation.
"""

import asyncio
import itertools

import pytest


def create_test_condition(name, logical_operator="AND", order=0):
    from complywatch.models.policy import PolicyCondition

    return PolicyCondition(
        condition_type=name,
        operator="equals",
        value="true",
        logical_operator=logical_operator,
        condition_order=order,
    )


def evaluate_with_truths(conditions, truths):
    """Evaluate conditions where each condition's truth comes from a dict."""
    from complywatch.services.policy.conditions import evaluate_conditions

    async def predicate(condition):
        return truths[condition.condition_type]

    return asyncio.run(evaluate_conditions(conditions, predicate))


class TestCompareValues:
    """Tests for compare_values."""

    @pytest.mark.parametrize("actual,operator,expected,result", [
        (85, "greater_than", "70", True),
        (70, "greater_than", "70", False),
        (70, "greater_equal", "70", True),
        (69.5, "less_than", "70", True),
        (70, "less_equal", "70.0", True),
        ("80", "equals", "80.0", True),
        ("High", "equals", "high", True),
        ("High", "not_equals", "critical", True),
        (True, "equals", "true", True),
        ("Data Exfiltration", "contains", "exfil", True),
        ("Data Exfiltration", "not_contains", "phishing", True),
        ("Finance", "in", "finance, legal", True),
        ("Sales", "not_in", "finance,legal", True),
        ("Sales", "in", "finance,legal", False),
    ])
    def test_operators(self, actual, operator, expected, result):
        from complywatch.models.policy import ComparisonOperator
        from complywatch.services.policy.conditions import compare_values

        assert compare_values(actual, ComparisonOperator(operator), expected) is result

    def test_numeric_operators_fail_closed(self):
        """Non-numeric and NaN inputs never satisfy a numeric comparison."""
        from complywatch.models.policy import ComparisonOperator
        from complywatch.services.policy.conditions import compare_values

        assert compare_values("abc", ComparisonOperator.GREATER_THAN, "10") is False
        assert compare_values(50, ComparisonOperator.LESS_THAN, "lots") is False
        assert compare_values(float("nan"), ComparisonOperator.GREATER_EQUAL, "0") is False

    def test_exists(self):
        from complywatch.models.policy import ComparisonOperator
        from complywatch.services.policy.conditions import compare_values

        assert compare_values("Engineer", ComparisonOperator.EXISTS, None)
        assert not compare_values("  ", ComparisonOperator.EXISTS, None)
        assert compare_values(None, ComparisonOperator.NOT_EXISTS, None)

    def test_missing_actual_is_false(self):
        from complywatch.models.policy import ComparisonOperator
        from complywatch.services.policy.conditions import compare_values

        assert compare_values(None, ComparisonOperator.EQUALS, "x") is False
        assert compare_values(None, ComparisonOperator.NOT_IN, "x") is False


class TestResolution:
    """Tests for type and operator aliases."""

    def test_aliases(self):
        from complywatch.models.policy import ComparisonOperator, ConditionType
        from complywatch.services.policy.conditions import resolve_condition_type, resolve_operator

        assert resolve_condition_type("time_based") == ConditionType.TIME_OF_DAY
        assert resolve_condition_type(" Risk_Score ") == ConditionType.RISK_SCORE
        assert resolve_operator("greater_than_or_equal") == ComparisonOperator.GREATER_EQUAL
        assert resolve_operator("less_than_or_equal") == ComparisonOperator.LESS_EQUAL

    def test_unknown_names(self):
        from complywatch.services.policy.conditions import resolve_condition_type, resolve_operator

        assert resolve_condition_type("moon_phase") is None
        assert resolve_operator("approximately") is None

    def test_logical_operator_parse(self):
        """Members pass through unchanged; anything but OR text means AND."""
        from complywatch.models.policy import LogicalOperator

        assert LogicalOperator.parse(LogicalOperator.OR) is LogicalOperator.OR
        assert LogicalOperator.parse(LogicalOperator.AND) is LogicalOperator.AND
        assert LogicalOperator.parse(" or ") is LogicalOperator.OR
        assert LogicalOperator.parse("XOR") is LogicalOperator.AND
        assert LogicalOperator.parse(None) is LogicalOperator.AND


class TestGrouping:
    """Tests for splitting conditions into groups."""

    def test_runs_of_same_operator(self):
        from complywatch.models.policy import LogicalOperator
        from complywatch.services.policy.conditions import group_conditions

        conditions = [
            create_test_condition("D", "OR", 3),
            create_test_condition("A", "AND", 0),
            create_test_condition("C", "OR", 2),
            create_test_condition("B", "AND", 1),
        ]

        groups = group_conditions(conditions)

        assert [g.operator for g in groups] == [LogicalOperator.AND, LogicalOperator.OR]
        assert [[c.condition_type for c in g.members] for g in groups] == [["A", "B"], ["C", "D"]]

    def test_alternating_operators_make_singleton_groups(self):
        from complywatch.services.policy.conditions import group_conditions

        conditions = [
            create_test_condition("A", "AND", 0),
            create_test_condition("B", "OR", 1),
            create_test_condition("C", "AND", 2),
        ]

        assert len(group_conditions(conditions)) == 3

    def test_or_members_form_or_group(self):
        """Conditions built with OR keep their operator through grouping."""
        from complywatch.models.policy import LogicalOperator
        from complywatch.services.policy.conditions import group_conditions

        groups = group_conditions([create_test_condition("A", "OR", 0), create_test_condition("B", "OR", 1)])

        assert [g.operator for g in groups] == [LogicalOperator.OR]
        assert evaluate_with_truths(
            [create_test_condition("A", "OR", 0), create_test_condition("B", "OR", 1)],
            {"A": False, "B": True},
        )


class TestGroupedEvaluation:
    """Tests for evaluate_conditions."""

    def test_no_conditions_always_true(self):
        assert evaluate_with_truths([], {}) is True

    def test_truth_table(self):
        """[A AND, B AND, C OR, D OR] is (A and B) or (C or D)."""
        conditions = [
            create_test_condition("A", "AND", 0),
            create_test_condition("B", "AND", 1),
            create_test_condition("C", "OR", 2),
            create_test_condition("D", "OR", 3),
        ]

        for a, b, c, d in itertools.product([False, True], repeat=4):
            truths = {"A": a, "B": b, "C": c, "D": d}
            assert evaluate_with_truths(conditions, truths) == ((a and b) or (c or d)), truths

    def test_and_group_short_circuits(self):
        from complywatch.services.policy.conditions import evaluate_conditions

        conditions = [
            create_test_condition("A", "AND", 0),
            create_test_condition("B", "AND", 1),
        ]
        seen = []

        async def predicate(condition):
            seen.append(condition.condition_type)
            return False

        assert asyncio.run(evaluate_conditions(conditions, predicate)) is False
        assert seen == ["A"]
