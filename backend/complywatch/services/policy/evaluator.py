"""
ComplyWatch Policy Evaluation Engine

Matches a persisted violation against every active policy and opens one
pending execution per satisfied policy.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from complywatch.database import (
    Employee,
    PolicyConditionRecord,
    PolicyExecutionRecord,
    SecurityPolicy,
    ViolationRecord,
    is_missing_schema_error,
)
from complywatch.models.policy import ConditionType, ExecutionStatus, LogicalOperator, PolicyCondition
from complywatch.utils.exceptions import PolicyEvaluationError
from complywatch.utils.helpers import utc_now

from .conditions import compare_values, evaluate_conditions, resolve_condition_type, resolve_operator

logger = logging.getLogger(__name__)

FREQUENCY_WINDOW = timedelta(hours=24)


@dataclass
class EvaluationContext:
    """What a condition can see about one violation."""
    violation: ViolationRecord
    employee: Optional[Employee]

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.violation.details or {}


class PolicyEvaluationEngine:
    """
    Evaluates policies for violations.

    Each policy is isolated: a failure while evaluating one is logged and
    counts as not triggered.
    """

    def __init__(self, session_factory, business_hours_start: int = 8, business_hours_end: int = 18):
        self.session_factory = session_factory
        self.business_hours_start = business_hours_start
        self.business_hours_end = business_hours_end
        self._resolvers: Dict[ConditionType, Callable[[EvaluationContext], Awaitable[Any]]] = {
            ConditionType.RISK_SCORE: self._risk_score,
            ConditionType.VIOLATION_SEVERITY: self._violation_severity,
            ConditionType.VIOLATION_TYPE: self._violation_type,
            ConditionType.FREQUENCY: self._frequency,
            ConditionType.TIME_OF_DAY: self._time_of_day,
            ConditionType.EXTERNAL_RECIPIENTS: self._external_recipients,
            ConditionType.DATA_ACCESS: self._data_access,
            ConditionType.EMPLOYEE_DEPARTMENT: self._employee_department,
            ConditionType.EMPLOYEE_ROLE: self._employee_role,
            ConditionType.ANY_VIOLATION: self._any_violation,
        }

    # -------------------------------------------------------------------------
    # Value resolvers
    # -------------------------------------------------------------------------

    async def _risk_score(self, ctx: EvaluationContext) -> Any:
        value = ctx.metadata.get("risk_score")
        if value is None and ctx.employee is not None:
            value = ctx.employee.risk_score
        return value if value is not None else 0

    async def _violation_severity(self, ctx: EvaluationContext) -> Any:
        return ctx.violation.severity

    async def _violation_type(self, ctx: EvaluationContext) -> Any:
        return ctx.violation.type

    async def _frequency(self, ctx: EvaluationContext) -> Any:
        since = utc_now() - FREQUENCY_WINDOW
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count(ViolationRecord.id)).where(
                    ViolationRecord.employee_id == ctx.violation.employee_id,
                    ViolationRecord.created_at >= since,
                )
            )
        return count or 0

    async def _time_of_day(self, ctx: EvaluationContext) -> Any:
        hour = (ctx.violation.created_at or utc_now()).hour
        return hour < self.business_hours_start or hour >= self.business_hours_end

    async def _external_recipients(self, ctx: EvaluationContext) -> Any:
        return ctx.metadata.get("external_recipients", 0)

    async def _data_access(self, ctx: EvaluationContext) -> Any:
        return ctx.metadata.get("data_access", ctx.metadata.get("attachment_count", 0))

    async def _employee_department(self, ctx: EvaluationContext) -> Any:
        return ctx.employee.department if ctx.employee else None

    async def _employee_role(self, ctx: EvaluationContext) -> Any:
        return ctx.employee.role if ctx.employee else None

    async def _any_violation(self, ctx: EvaluationContext) -> Any:
        return True

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    async def evaluate_condition(self, condition: PolicyCondition, ctx: EvaluationContext) -> bool:
        condition_type = resolve_condition_type(condition.condition_type)
        if condition_type is None:
            logger.warning(f"Unknown condition type: {condition.condition_type}")
            return False
        operator = resolve_operator(condition.operator)
        if operator is None:
            logger.warning(f"Unknown operator: {condition.operator}")
            return False

        actual = await self._resolvers[condition_type](ctx)
        return compare_values(actual, operator, condition.value)

    async def evaluate_policy(self, conditions: List[PolicyCondition], ctx: EvaluationContext) -> bool:
        async def predicate(condition: PolicyCondition) -> bool:
            return await self.evaluate_condition(condition, ctx)

        return await evaluate_conditions(conditions, predicate)

    async def evaluate_policies_for_violation(self, violation_id: int, employee_id: int) -> int:
        """
        Evaluate all active policies for a violation.

        Returns:
            Number of policies whose conditions were satisfied
        """
        try:
            ctx, policies, conditions = await self._load(violation_id, employee_id)
        except Exception as e:
            if is_missing_schema_error(e):
                logger.warning(f"Policy tables not ready, skipping evaluation: {e}")
                return 0
            raise PolicyEvaluationError(f"Could not load policies for violation {violation_id}: {e}") from e

        if ctx is None:
            logger.warning(f"Violation {violation_id} not found, nothing to evaluate")
            return 0

        triggered = 0
        for policy in policies:
            try:
                if not await self.evaluate_policy(conditions.get(policy.id, []), ctx):
                    continue
                created = await self._open_execution(policy.id, employee_id, violation_id)
                triggered += 1
                if created:
                    logger.info(f"Policy '{policy.name}' triggered for violation {violation_id}")
            except Exception as e:
                logger.error(f"Error evaluating policy {policy.id} for violation {violation_id}: {e}")

        return triggered

    async def _load(self, violation_id: int, employee_id: int):
        async with self.session_factory() as session:
            violation = await session.get(ViolationRecord, violation_id)
            if violation is None:
                return None, [], {}
            employee = await session.get(Employee, employee_id)

            policies = (await session.scalars(
                select(SecurityPolicy)
                .where(SecurityPolicy.is_active.is_(True))
                .order_by(SecurityPolicy.priority.desc(), SecurityPolicy.created_at.desc())
            )).all()

            conditions: Dict[int, List[PolicyCondition]] = {}
            if policies:
                rows = (await session.scalars(
                    select(PolicyConditionRecord)
                    .where(PolicyConditionRecord.policy_id.in_([p.id for p in policies]))
                    .order_by(PolicyConditionRecord.condition_order, PolicyConditionRecord.id)
                )).all()
                for row in rows:
                    conditions.setdefault(row.policy_id, []).append(PolicyCondition(
                        condition_type=row.condition_type,
                        operator=row.operator,
                        value=row.value,
                        logical_operator=LogicalOperator.parse(row.logical_operator),
                        condition_order=row.condition_order or 0,
                    ))

        return EvaluationContext(violation, employee), policies, conditions

    async def _open_execution(self, policy_id: int, employee_id: int, violation_id: int) -> bool:
        """Create the pending execution unless one already exists."""
        async with self.session_factory() as session:
            existing = await session.scalar(
                select(PolicyExecutionRecord.id).where(
                    PolicyExecutionRecord.policy_id == policy_id,
                    PolicyExecutionRecord.violation_id == violation_id,
                )
            )
            if existing is not None:
                return False

            now = utc_now()
            session.add(PolicyExecutionRecord(
                policy_id=policy_id,
                employee_id=employee_id,
                violation_id=violation_id,
                status=ExecutionStatus.PENDING.value,
                started_at=now,
                next_run_at=now,
                action_results=[],
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True
