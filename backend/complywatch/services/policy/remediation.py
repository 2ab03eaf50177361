"""
ComplyWatch Remediation Backends

Side effects of policy actions. Handlers only talk to a RemediationBackend,
so the executor can run against the database, a webhook, or a test double.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from complywatch.database import (
    AccessRestriction,
    ActivityLog,
    Incident,
    LoggingSetting,
    MonitoringSetting,
    SystemNotification,
    is_missing_schema_error,
)
from complywatch.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class RemediationBackend(ABC):
    """Interface for carrying out remediation side effects."""

    @abstractmethod
    async def send_alert(
        self,
        employee_id: int,
        recipients: List[str],
        subject: str,
        message: str,
        priority: str = "normal",
        channel: str = "email",
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def open_incident(
        self,
        employee_id: int,
        violation_id: int,
        policy_id: int,
        title: str,
        description: str,
        severity: str,
        escalation_level: str,
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def set_monitoring(
        self, employee_id: int, level: str, reason: str, expires_at: datetime
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def restrict_access(
        self, employee_id: int, access_type: str, reason: str, expires_at: Optional[datetime]
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def enable_detailed_logging(
        self,
        employee_id: int,
        include_network: bool,
        include_files: bool,
        include_emails: bool,
        expires_at: datetime,
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def broadcast_system_alert(
        self, title: str, message: str, priority: str, employee_id: Optional[int] = None
    ) -> Dict[str, Any]:
        ...


class WebhookAlertNotifier:
    """Posts alert payloads as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: int = 10):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def post(self, payload: Dict[str, Any]) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, json=payload) as response:
                    if response.status >= 400:
                        logger.warning(f"Alert webhook returned {response.status}")
                        return False
                    return True
        except aiohttp.ClientError as e:
            logger.error(f"Alert webhook connection error: {e}")
            return False
        except asyncio.TimeoutError:
            logger.error("Alert webhook timed out")
            return False


class DatabaseRemediationBackend(RemediationBackend):
    """
    Records remediation in the database.

    When a remediation table is missing the action is logged only, so a
    partially migrated database does not fail whole executions.
    """

    def __init__(self, session_factory, notifier: Optional[WebhookAlertNotifier] = None):
        self.session_factory = session_factory
        self.notifier = notifier

    async def _store(self, record, activity: Optional[ActivityLog] = None) -> Optional[int]:
        try:
            async with self.session_factory() as session:
                session.add(record)
                if activity is not None:
                    session.add(activity)
                await session.commit()
                return record.id
        except Exception as e:
            if is_missing_schema_error(e):
                logger.warning(f"Remediation table missing, {type(record).__name__} logged only: {e}")
                return None
            raise

    @staticmethod
    def _stored(record_id: Optional[int], **extra) -> Dict[str, Any]:
        result = {"status": "recorded" if record_id is not None else "logged_only", "record_id": record_id}
        result.update(extra)
        return result

    async def send_alert(self, employee_id, recipients, subject, message, priority="normal", channel="email"):
        record_id = await self._store(SystemNotification(
            employee_id=employee_id,
            type="policy_alert",
            channel=channel,
            priority=priority,
            title=subject,
            message=message,
            recipients=list(recipients),
        ))
        delivered = None
        if self.notifier is not None:
            delivered = await self.notifier.post({
                "type": "policy_alert",
                "channel": channel,
                "priority": priority,
                "subject": subject,
                "message": message,
                "recipients": list(recipients),
                "employee_id": employee_id,
                "sent_at": utc_now().isoformat(),
            })
        return self._stored(record_id, recipients=list(recipients), webhook_delivered=delivered)

    async def open_incident(self, employee_id, violation_id, policy_id, title, description, severity, escalation_level):
        record_id = await self._store(
            Incident(
                employee_id=employee_id,
                violation_id=violation_id,
                policy_id=policy_id,
                title=title,
                description=description,
                severity=severity,
                escalation_level=escalation_level,
            ),
            ActivityLog(employee_id=employee_id, action="incident_opened",
                        details={"violation_id": violation_id, "escalation_level": escalation_level}),
        )
        return self._stored(record_id, incident_id=record_id, escalation_level=escalation_level)

    async def set_monitoring(self, employee_id, level, reason, expires_at):
        record_id = await self._store(
            MonitoringSetting(employee_id=employee_id, monitoring_level=level, reason=reason, expires_at=expires_at),
            ActivityLog(employee_id=employee_id, action="monitoring_increased", details={"level": level}),
        )
        return self._stored(record_id, monitoring_level=level, expires_at=expires_at.isoformat())

    async def restrict_access(self, employee_id, access_type, reason, expires_at):
        record_id = await self._store(
            AccessRestriction(employee_id=employee_id, access_type=access_type, reason=reason, expires_at=expires_at),
            ActivityLog(employee_id=employee_id, action="access_restricted", details={"access_type": access_type}),
        )
        return self._stored(
            record_id,
            access_type=access_type,
            expires_at=expires_at.isoformat() if expires_at else None,
        )

    async def enable_detailed_logging(self, employee_id, include_network, include_files, include_emails, expires_at):
        record_id = await self._store(
            LoggingSetting(
                employee_id=employee_id,
                include_network=include_network,
                include_files=include_files,
                include_emails=include_emails,
                expires_at=expires_at,
            ),
            ActivityLog(employee_id=employee_id, action="detailed_logging_enabled", details={}),
        )
        return self._stored(record_id, expires_at=expires_at.isoformat())

    async def broadcast_system_alert(self, title, message, priority, employee_id=None):
        record_id = await self._store(SystemNotification(
            employee_id=employee_id,
            type="system_alert",
            channel="system",
            priority=priority,
            title=title,
            message=message,
            recipients=[],
        ))
        if self.notifier is not None:
            await self.notifier.post({
                "type": "system_alert",
                "priority": priority,
                "title": title,
                "message": message,
                "employee_id": employee_id,
            })
        return self._stored(record_id, priority=priority)
