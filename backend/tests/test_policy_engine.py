"""
ComplyWatch Policy Engine Tests

Tests for evaluating stored policies against stored violations.
"""

from datetime import timedelta

from sqlalchemy import func, select


async def create_test_employee(session_factory, department="Finance"):
    from complywatch.database import Employee

    async with session_factory() as session:
        employee = Employee(name="Dana Reyes", email="dana@company.com", department=department, role="Analyst", risk_score=20)
        session.add(employee)
        await session.commit()
        return employee.id


async def create_test_violation(session_factory, employee_id, metadata=None, created_at=None):
    from complywatch.database import ViolationRecord
    from complywatch.utils.helpers import utc_now

    async with session_factory() as session:
        violation = ViolationRecord(
            employee_id=employee_id,
            type="Data Exfiltration",
            severity="High",
            description="Sent files to personal address",
            details=metadata or {},
            created_at=created_at or utc_now(),
        )
        session.add(violation)
        await session.commit()
        return violation.id


async def create_test_policy(session_factory, conditions, name="High risk", priority=0, is_active=True):
    """Store a policy; conditions are (type, operator, value, logical_operator) tuples."""
    from complywatch.database import PolicyConditionRecord, SecurityPolicy

    async with session_factory() as session:
        policy = SecurityPolicy(name=name, priority=priority, is_active=is_active)
        session.add(policy)
        await session.flush()
        for order, (condition_type, operator, value, logical) in enumerate(conditions):
            session.add(PolicyConditionRecord(
                policy_id=policy.id,
                condition_type=condition_type,
                operator=operator,
                value=value,
                logical_operator=logical,
                condition_order=order,
            ))
        await session.commit()
        return policy.id


async def count_executions(session_factory):
    from complywatch.database import PolicyExecutionRecord

    async with session_factory() as session:
        return await session.scalar(select(func.count(PolicyExecutionRecord.id)))


class TestPolicyEvaluation:
    """Tests for PolicyEvaluationEngine.evaluate_policies_for_violation."""

    def test_risk_threshold_opens_pending_execution(self, run_with_db):
        """A risk_score > 70 policy fires for a violation scored 85."""
        from complywatch.database import PolicyExecutionRecord
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id, {"risk_score": 85})
            policy_id = await create_test_policy(session_factory, [("risk_score", "greater_than", "70", "AND")])

            engine = PolicyEvaluationEngine(session_factory)
            triggered = await engine.evaluate_policies_for_violation(violation_id, employee_id)

            async with session_factory() as session:
                executions = (await session.scalars(select(PolicyExecutionRecord))).all()
            return triggered, policy_id, violation_id, executions

        triggered, policy_id, violation_id, executions = run_with_db(scenario)

        assert triggered == 1
        assert len(executions) == 1
        assert executions[0].policy_id == policy_id
        assert executions[0].violation_id == violation_id
        assert executions[0].status == "pending"
        assert executions[0].started_at is not None
        assert executions[0].next_run_at == executions[0].started_at

    def test_reevaluation_does_not_duplicate(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id, {"risk_score": 85})
            await create_test_policy(session_factory, [("risk_score", "greater_than", "70", "AND")])

            engine = PolicyEvaluationEngine(session_factory)
            await engine.evaluate_policies_for_violation(violation_id, employee_id)
            await engine.evaluate_policies_for_violation(violation_id, employee_id)
            return await count_executions(session_factory)

        assert run_with_db(scenario) == 1

    def test_unmatched_and_inactive_policies_do_not_fire(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id, {"risk_score": 40})
            await create_test_policy(session_factory, [("risk_score", "greater_than", "70", "AND")])
            await create_test_policy(session_factory, [("any_violation", "equals", "true", "AND")], is_active=False)

            engine = PolicyEvaluationEngine(session_factory)
            return await engine.evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 0

    def test_unknown_violation_returns_zero(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            await create_test_policy(session_factory, [])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(999, 1)

        assert run_with_db(scenario) == 0

    def test_missing_schema_returns_zero(self, run_with_db):
        """Evaluation degrades when the policy tables were never created."""
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(1, 1)

        assert run_with_db(scenario, create_schema=False) == 0

    def test_policy_without_conditions_fires(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id)
            await create_test_policy(session_factory, [])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 1

    def test_or_group_rescues_failed_and_group(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory, department="Finance")
            violation_id = await create_test_violation(session_factory, employee_id, {"risk_score": 30})
            await create_test_policy(session_factory, [
                ("risk_score", "greater_than", "70", "AND"),
                ("violation_severity", "equals", "critical", "AND"),
                ("employee_department", "in", "finance,legal", "OR"),
            ])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 1

    def test_failing_policy_does_not_stop_others(self, run_with_db, caplog):
        """An error in one policy is logged; the next policy still fires."""
        from complywatch.database import PolicyExecutionRecord
        from complywatch.services.policy import PolicyEvaluationEngine

        class BrokenResolverEngine(PolicyEvaluationEngine):
            async def evaluate_condition(self, condition, ctx):
                if condition.condition_type == "data_access":
                    raise RuntimeError("resolver exploded")
                return await super().evaluate_condition(condition, ctx)

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id)
            broken_id = await create_test_policy(
                session_factory, [("data_access", "greater_than", "0", "AND")], name="Broken", priority=10
            )
            working_id = await create_test_policy(
                session_factory, [("any_violation", "equals", "true", "AND")], name="Catch-all"
            )

            engine = BrokenResolverEngine(session_factory)
            triggered = await engine.evaluate_policies_for_violation(violation_id, employee_id)

            async with session_factory() as session:
                policy_ids = (await session.scalars(select(PolicyExecutionRecord.policy_id))).all()
            return triggered, broken_id, working_id, list(policy_ids)

        triggered, broken_id, working_id, policy_ids = run_with_db(scenario)

        assert triggered == 1
        assert policy_ids == [working_id]
        assert f"Error evaluating policy {broken_id}" in caplog.text
        assert "resolver exploded" in caplog.text


class TestConditionResolution:
    """Tests for individual condition types."""

    def test_unknown_condition_type_is_false(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id)
            await create_test_policy(session_factory, [("moon_phase", "equals", "full", "AND")])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 0

    def test_frequency_counts_recent_violations(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine
        from complywatch.utils.helpers import utc_now

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            await create_test_violation(session_factory, employee_id, created_at=utc_now() - timedelta(days=3))
            await create_test_violation(session_factory, employee_id)
            violation_id = await create_test_violation(session_factory, employee_id)
            await create_test_policy(session_factory, [("frequency", "greater_equal", "2", "AND")], name="twice")
            await create_test_policy(session_factory, [("frequency", "greater_equal", "3", "AND")], name="thrice")
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 1

    def test_risk_score_falls_back_to_employee(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            violation_id = await create_test_violation(session_factory, employee_id)
            await create_test_policy(session_factory, [("risk_score", "equals", "20", "AND")])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 1

    def test_time_of_day(self, run_with_db):
        from complywatch.services.policy import PolicyEvaluationEngine
        from complywatch.utils.helpers import utc_now

        async def scenario(session_factory):
            employee_id = await create_test_employee(session_factory)
            late = utc_now().replace(hour=22, minute=0)
            violation_id = await create_test_violation(session_factory, employee_id, created_at=late)
            await create_test_policy(session_factory, [("time_based", "equals", "true", "AND")])
            return await PolicyEvaluationEngine(session_factory).evaluate_policies_for_violation(violation_id, employee_id)

        assert run_with_db(scenario) == 1
