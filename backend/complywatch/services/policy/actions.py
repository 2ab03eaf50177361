"""
ComplyWatch Policy Actions

Typed action configurations and their handlers. Every ActionType must have a
handler; this is checked when the module is imported.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from complywatch.models.policy import ACTION_TYPE_ALIASES, ActionType
from complywatch.utils.exceptions import InvalidActionConfigError, UnknownActionTypeError
from complywatch.utils.helpers import split_csv, to_number, utc_now

from .remediation import RemediationBackend

logger = logging.getLogger(__name__)


def parse_action_type(name: str) -> ActionType:
    """Resolve an action type name, accepting legacy aliases."""
    key = str(name or "").strip().lower()
    if key in ACTION_TYPE_ALIASES:
        return ACTION_TYPE_ALIASES[key]
    try:
        return ActionType(key)
    except ValueError:
        raise UnknownActionTypeError(f"Unknown action type: {name}")


@dataclass
class ActionContext:
    """The execution an action runs for."""
    execution_id: int
    policy_id: int
    policy_name: str
    employee_id: int
    violation_id: int
    violation_type: str
    violation_severity: str
    employee_name: Optional[str] = None
    employee_email: Optional[str] = None
    now: datetime = field(default_factory=utc_now)

    @property
    def reason(self) -> str:
        return f"Policy '{self.policy_name}' triggered by {self.violation_type} violation {self.violation_id}"


# =============================================================================
# CONFIGS
# =============================================================================

def _hours(config: Dict[str, Any], key: str, default: Optional[float]) -> Optional[float]:
    if config.get(key) is None:
        return default
    value = to_number(config[key])
    if value is None or value <= 0:
        raise InvalidActionConfigError(f"{key} must be a positive number, got {config[key]!r}")
    return value


def _flag(config: Dict[str, Any], key: str, default: bool) -> bool:
    value = config.get(key, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass
class NotifyConfig:
    recipients: List[str]
    subject: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "NotifyConfig":
        recipients = split_csv(config.get("recipients"))
        if not recipients:
            raise InvalidActionConfigError("notify action requires at least one recipient")
        return cls(recipients, config.get("subject"), config.get("message"))


@dataclass
class EscalateIncidentConfig:
    escalation_level: str = "high"
    notify_management: bool = False

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "EscalateIncidentConfig":
        return cls(
            escalation_level=str(config.get("escalation_level") or "high").lower(),
            notify_management=_flag(config, "notify_management", False),
        )


@dataclass
class IncreaseMonitoringConfig:
    duration_hours: float = 24
    monitoring_level: str = "high"

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "IncreaseMonitoringConfig":
        return cls(
            duration_hours=_hours(config, "duration_hours", 24),
            monitoring_level=str(config.get("monitoring_level") or "high").lower(),
        )


@dataclass
class RestrictAccessConfig:
    access_type: str = "all"
    duration_hours: Optional[float] = None
    notify_employee: bool = False

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "RestrictAccessConfig":
        return cls(
            access_type=str(config.get("access_type") or "all").lower(),
            duration_hours=_hours(config, "duration_hours", None),
            notify_employee=_flag(config, "notify_employee", False),
        )


@dataclass
class DetailedLoggingConfig:
    duration_hours: float = 48
    include_network: bool = True
    include_files: bool = True
    include_emails: bool = True

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "DetailedLoggingConfig":
        return cls(
            duration_hours=_hours(config, "duration_hours", 48),
            include_network=_flag(config, "include_network", True),
            include_files=_flag(config, "include_files", True),
            include_emails=_flag(config, "include_emails", True),
        )


ALERT_CHANNELS = ("email", "system", "sms", "push")


@dataclass
class ImmediateAlertConfig:
    channels: List[str] = field(default_factory=lambda: ["email", "system"])
    priority: str = "urgent"
    recipients: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ImmediateAlertConfig":
        channels = split_csv(config.get("channels")) or ["email", "system"]
        unknown = [c for c in channels if c not in ALERT_CHANNELS]
        if unknown:
            raise InvalidActionConfigError(f"Unsupported alert channels: {', '.join(unknown)}")
        return cls(
            channels=channels,
            priority=str(config.get("priority") or "urgent").lower(),
            recipients=split_csv(config.get("recipients")),
            message=config.get("message"),
        )


# =============================================================================
# HANDLERS
# =============================================================================

async def handle_notify(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = NotifyConfig.from_dict(config)
    subject = cfg.subject or f"Policy alert: {ctx.policy_name}"
    message = cfg.message or (
        f"{ctx.violation_severity} {ctx.violation_type} violation detected for "
        f"{ctx.employee_name or f'employee {ctx.employee_id}'}. {ctx.reason}."
    )
    return await backend.send_alert(ctx.employee_id, cfg.recipients, subject, message)


async def handle_escalate_incident(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = EscalateIncidentConfig.from_dict(config)
    result = await backend.open_incident(
        employee_id=ctx.employee_id,
        violation_id=ctx.violation_id,
        policy_id=ctx.policy_id,
        title=f"{ctx.violation_type} incident for {ctx.employee_name or ctx.employee_id}",
        description=ctx.reason,
        severity=ctx.violation_severity,
        escalation_level=cfg.escalation_level,
    )
    if cfg.notify_management:
        await backend.broadcast_system_alert(
            title=f"Incident escalated ({cfg.escalation_level})",
            message=ctx.reason,
            priority="high",
            employee_id=ctx.employee_id,
        )
    result["management_notified"] = cfg.notify_management
    return result


async def handle_increase_monitoring(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = IncreaseMonitoringConfig.from_dict(config)
    expires_at = ctx.now + timedelta(hours=cfg.duration_hours)
    return await backend.set_monitoring(ctx.employee_id, cfg.monitoring_level, ctx.reason, expires_at)


async def handle_restrict_access(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = RestrictAccessConfig.from_dict(config)
    expires_at = ctx.now + timedelta(hours=cfg.duration_hours) if cfg.duration_hours else None
    result = await backend.restrict_access(ctx.employee_id, cfg.access_type, ctx.reason, expires_at)
    if cfg.notify_employee and ctx.employee_email:
        await backend.send_alert(
            ctx.employee_id,
            [ctx.employee_email],
            "Your access has been restricted",
            f"Access type '{cfg.access_type}' was restricted pending review.",
        )
    result["employee_notified"] = bool(cfg.notify_employee and ctx.employee_email)
    return result


async def handle_enable_detailed_logging(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = DetailedLoggingConfig.from_dict(config)
    expires_at = ctx.now + timedelta(hours=cfg.duration_hours)
    return await backend.enable_detailed_logging(
        ctx.employee_id, cfg.include_network, cfg.include_files, cfg.include_emails, expires_at
    )


async def handle_immediate_alert(ctx: ActionContext, config: Dict[str, Any], backend: RemediationBackend) -> Dict[str, Any]:
    cfg = ImmediateAlertConfig.from_dict(config)
    message = cfg.message or f"URGENT: {ctx.reason}"
    delivered: Dict[str, Any] = {}
    for channel in cfg.channels:
        if channel == "system":
            delivered[channel] = await backend.broadcast_system_alert(
                "Immediate policy alert", message, cfg.priority, ctx.employee_id
            )
        else:
            delivered[channel] = await backend.send_alert(
                ctx.employee_id, cfg.recipients, "Immediate policy alert", message, cfg.priority, channel
            )
    return {"channels": cfg.channels, "priority": cfg.priority, "deliveries": delivered}


ActionHandler = Callable[[ActionContext, Dict[str, Any], RemediationBackend], Awaitable[Dict[str, Any]]]

ACTION_HANDLERS: Dict[ActionType, ActionHandler] = {
    ActionType.NOTIFY: handle_notify,
    ActionType.ESCALATE_INCIDENT: handle_escalate_incident,
    ActionType.INCREASE_MONITORING: handle_increase_monitoring,
    ActionType.RESTRICT_ACCESS: handle_restrict_access,
    ActionType.ENABLE_DETAILED_LOGGING: handle_enable_detailed_logging,
    ActionType.IMMEDIATE_ALERT: handle_immediate_alert,
}

_unhandled = set(ActionType) - set(ACTION_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Action types without handlers: {sorted(t.value for t in _unhandled)}")


async def run_action(
    action_type: str,
    ctx: ActionContext,
    config: Dict[str, Any],
    backend: RemediationBackend,
) -> Dict[str, Any]:
    """Dispatch one action to its handler."""
    resolved = parse_action_type(action_type)
    logger.info(f"Running {resolved.value} for execution {ctx.execution_id}")
    return await ACTION_HANDLERS[resolved](ctx, config or {}, backend)
