"""
ComplyWatch Policy Data Models

Pydantic models for policies, conditions, actions and executions.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class LogicalOperator(str, Enum):
    """How a condition joins its neighbours."""
    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value) -> "LogicalOperator":
        if isinstance(value, cls):
            return value
        return cls.OR if str(value or "").strip().upper() == "OR" else cls.AND


class ConditionType(str, Enum):
    """Value a condition reads from the violation or employee."""
    RISK_SCORE = "risk_score"
    VIOLATION_SEVERITY = "violation_severity"
    VIOLATION_TYPE = "violation_type"
    FREQUENCY = "frequency"
    TIME_OF_DAY = "time_of_day"
    EXTERNAL_RECIPIENTS = "external_recipients"
    DATA_ACCESS = "data_access"
    EMPLOYEE_DEPARTMENT = "employee_department"
    EMPLOYEE_ROLE = "employee_role"
    ANY_VIOLATION = "any_violation"


CONDITION_TYPE_ALIASES: Dict[str, ConditionType] = {
    "time_based": ConditionType.TIME_OF_DAY,
}


class ComparisonOperator(str, Enum):
    """Comparison between the actual and configured value."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


OPERATOR_ALIASES: Dict[str, ComparisonOperator] = {
    "greater_than_or_equal": ComparisonOperator.GREATER_EQUAL,
    "less_than_or_equal": ComparisonOperator.LESS_EQUAL,
}


class ActionType(str, Enum):
    """Closed set of remediation actions."""
    NOTIFY = "notify"
    ESCALATE_INCIDENT = "escalate_incident"
    INCREASE_MONITORING = "increase_monitoring"
    RESTRICT_ACCESS = "restrict_access"
    ENABLE_DETAILED_LOGGING = "enable_detailed_logging"
    IMMEDIATE_ALERT = "immediate_alert"


ACTION_TYPE_ALIASES: Dict[str, ActionType] = {
    "email_alert": ActionType.NOTIFY,
    "disable_access": ActionType.RESTRICT_ACCESS,
    "log_detailed_activity": ActionType.ENABLE_DETAILED_LOGGING,
}


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PolicyCondition(BaseModel):
    """Condition as stored, before type/operator resolution."""
    condition_type: str = Field(..., description="Condition type name")
    operator: str = Field(..., description="Comparison operator name")
    value: Optional[str] = Field(None, description="Configured value")
    logical_operator: LogicalOperator = Field(LogicalOperator.AND)
    condition_order: Optional[int] = Field(None)


class PolicyActionSpec(BaseModel):
    """Action as configured on a policy."""
    action_type: str = Field(..., description="Action type name")
    action_config: Dict[str, Any] = Field(default_factory=dict)
    execution_order: Optional[int] = Field(None)
    delay_minutes: int = Field(0, ge=0)
    is_enabled: bool = Field(True)


class PolicyCreate(BaseModel):
    """Payload for creating a policy with its conditions and actions."""
    name: str
    description: Optional[str] = None
    is_active: bool = True
    priority: int = 0
    conditions: List[PolicyCondition] = Field(default_factory=list)
    actions: List[PolicyActionSpec] = Field(default_factory=list)


class ActionOutcome(BaseModel):
    """Per-action entry in an execution's result log."""
    action_id: int
    type: str
    status: str = Field(..., description="success or failed")
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    executed_at: Optional[str] = None


class PolicyExecutionView(BaseModel):
    """Execution as returned by the API."""
    id: int
    policy_id: int
    employee_id: int
    violation_id: int
    status: ExecutionStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    action_results: List[ActionOutcome] = Field(default_factory=list)
    error_message: Optional[str] = None
    summary: Optional[str] = None

    model_config = {"from_attributes": True}
