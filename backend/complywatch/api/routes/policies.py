"""
ComplyWatch Policy API

Create policies, trigger evaluation for a violation and inspect executions.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from complywatch.api.dependencies import get_policy_engine
from complywatch.database import (
    PolicyActionRecord,
    PolicyConditionRecord,
    PolicyExecutionRecord,
    SecurityPolicy,
    get_db,
)
from complywatch.models.policy import ExecutionStatus, PolicyCreate, PolicyExecutionView
from complywatch.services.policy.actions import parse_action_type
from complywatch.services.policy.conditions import resolve_condition_type, resolve_operator
from complywatch.utils.exceptions import PolicyEvaluationError, UnknownActionTypeError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["policies"])


class EvaluateRequest(BaseModel):
    violation_id: int
    employee_id: int


def _validate_policy(policy: PolicyCreate) -> None:
    for condition in policy.conditions:
        if resolve_condition_type(condition.condition_type) is None:
            raise HTTPException(status_code=400, detail=f"Unknown condition type: {condition.condition_type}")
        if resolve_operator(condition.operator) is None:
            raise HTTPException(status_code=400, detail=f"Unknown operator: {condition.operator}")
    for action in policy.actions:
        try:
            parse_action_type(action.action_type)
        except UnknownActionTypeError as e:
            raise HTTPException(status_code=400, detail=str(e))


@router.post("/policies", status_code=201)
async def create_policy(
    policy: PolicyCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a policy with its ordered conditions and actions."""
    _validate_policy(policy)

    record = SecurityPolicy(
        name=policy.name,
        description=policy.description,
        is_active=policy.is_active,
        priority=policy.priority,
    )
    db.add(record)
    await db.flush()

    for order, condition in enumerate(policy.conditions):
        db.add(PolicyConditionRecord(
            policy_id=record.id,
            condition_type=condition.condition_type,
            operator=condition.operator,
            value=condition.value,
            logical_operator=condition.logical_operator.value,
            condition_order=order if condition.condition_order is None else condition.condition_order,
        ))
    for order, action in enumerate(policy.actions):
        db.add(PolicyActionRecord(
            policy_id=record.id,
            action_type=action.action_type,
            action_config=action.action_config,
            execution_order=order if action.execution_order is None else action.execution_order,
            delay_minutes=action.delay_minutes,
            is_enabled=action.is_enabled,
        ))

    logger.info(f"Created policy '{policy.name}' with {len(policy.conditions)} condition(s)")
    return {"id": record.id, "name": record.name}


@router.post("/policies/evaluate")
async def evaluate_policies(
    request: EvaluateRequest,
    engine = Depends(get_policy_engine),
):
    """Evaluate every active policy against a stored violation."""
    try:
        triggered = await engine.evaluate_policies_for_violation(request.violation_id, request.employee_id)
    except PolicyEvaluationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"violation_id": request.violation_id, "policies_triggered": triggered}


@router.get("/executions", response_model=List[PolicyExecutionView])
async def list_executions(
    status: Optional[ExecutionStatus] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List policy executions, newest first."""
    query = select(PolicyExecutionRecord).order_by(PolicyExecutionRecord.started_at.desc()).limit(limit)
    if status is not None:
        query = query.where(PolicyExecutionRecord.status == status.value)
    rows = (await db.scalars(query)).all()
    return [PolicyExecutionView.model_validate(row) for row in rows]
