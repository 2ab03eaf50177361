"""
ComplyWatch Message Ingestion

Classifies an incoming message, records the violations it produced, hands
each violation to the policy engine and refreshes the sender's aggregate
risk score.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select

from complywatch.database import Employee, ViolationRecord, is_missing_schema_error
from complywatch.models.classification import ClassificationResult, ComplianceViolation, Severity
from complywatch.models.message import EmployeeContext, Message
from complywatch.services.classification.detectors import MessageFeatures
from complywatch.services.classification.pipeline import TieredClassifier
from complywatch.services.policy.evaluator import PolicyEvaluationEngine
from complywatch.utils.constants import (
    EMPLOYEE_RISK_HISTORY_LIMIT,
    EMPLOYEE_RISK_WINDOW_DAYS,
    SECURITY_VIOLATION_THRESHOLD,
    SEVERITY_RISK_SCORES,
    SIGNIFICANT_CATEGORY_SCORE,
)
from complywatch.utils.helpers import clamp_score, to_number, utc_now

logger = logging.getLogger(__name__)

SECURITY_SOURCE = "security_analysis"
COMPLIANCE_SOURCE = "compliance_analysis"

# Checked in order against the joined, lowercased risk factors
FACTOR_VIOLATION_TYPES = [
    (("data", "exfiltration"), "Data Exfiltration"),
    (("external", "unauthorized"), "Unauthorized Communication"),
    (("competitor", "confidential"), "Information Disclosure"),
    (("termination", "resignation"), "Employment Risk"),
]
DEFAULT_SECURITY_VIOLATION_TYPE = "Security Policy Violation"


@dataclass
class IngestionResult:
    classification: ClassificationResult
    employee_id: int
    violation_ids: List[int] = field(default_factory=list)
    policies_triggered: int = 0
    employee_risk_score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classification": self.classification.model_dump(mode="json"),
            "employee_id": self.employee_id,
            "violation_ids": self.violation_ids,
            "policies_triggered": self.policies_triggered,
            "employee_risk_score": self.employee_risk_score,
        }


def security_violation_type(result: ClassificationResult) -> str:
    """Name the security violation after its strongest category, else its risk factors."""
    significant = sorted(
        (p for p in result.patterns if p.source == "categories" and p.score >= SIGNIFICANT_CATEGORY_SCORE),
        key=lambda p: p.score,
        reverse=True,
    )
    if significant:
        return significant[0].category

    factors = " ".join(result.risk_factors).lower()
    for keywords, violation_type in FACTOR_VIOLATION_TYPES:
        if any(keyword in factors for keyword in keywords):
            return violation_type
    return DEFAULT_SECURITY_VIOLATION_TYPE


def security_severity(risk_score: int) -> Severity:
    if risk_score >= 90:
        return Severity.CRITICAL
    if risk_score >= 80:
        return Severity.HIGH
    return Severity.MEDIUM


def _violation_risk(violation: ViolationRecord) -> float:
    details = violation.details or {}
    scores = [to_number(details.get("risk_score")), to_number(details.get("compliance_score"))]
    scores = [s for s in scores if s is not None]
    if scores:
        return max(scores)
    return SEVERITY_RISK_SCORES.get(Severity.parse(violation.severity).value, 50)


def compute_employee_risk(violations: Sequence[ViolationRecord]) -> Optional[int]:
    """
    Aggregate risk from an employee's recent active violations, newest first.

    Recent violations weigh more; volume and severity add a bounded penalty,
    and compliance violations add a further bounded one. Returns None when
    there is no history to score.
    """
    if not violations:
        return None

    total_weight = 0.0
    weighted = 0.0
    for index, violation in enumerate(violations):
        weight = max(1.0, 10 - (index + 1) * 0.2)
        weighted += _violation_risk(violation) * weight
        total_weight += weight
    history_score = weighted / total_weight

    severities = [Severity.parse(v.severity) for v in violations]
    critical = severities.count(Severity.CRITICAL)
    high = severities.count(Severity.HIGH)
    volume_score = min(critical * 25 + high * 15 + len(violations) * 5, 50)

    compliance_count = sum(1 for v in violations if v.source == COMPLIANCE_SOURCE)
    penalty = min(compliance_count * 5, 15)

    return clamp_score(round(history_score * 0.6 + volume_score * 0.3) + penalty)


class MessageIngestionService:
    """
    End-to-end handling of one message.

    Policy evaluation failures are logged and never abort ingestion.
    """

    def __init__(
        self,
        session_factory,
        classifier: TieredClassifier,
        policy_engine: Optional[PolicyEvaluationEngine] = None,
    ):
        self.session_factory = session_factory
        self.classifier = classifier
        self.policy_engine = policy_engine or PolicyEvaluationEngine(session_factory)

    async def ingest(self, message: Message, employee: EmployeeContext) -> IngestionResult:
        employee = await self._ensure_employee(employee)
        classification = await self.classifier.classify(message, employee)
        outcome = IngestionResult(classification=classification, employee_id=employee.employee_id)

        features = MessageFeatures.from_message(message, self.classifier.internal_domains)
        records = self._build_violations(message, employee, classification, features)
        if records:
            outcome.violation_ids = await self._store_violations(records)
            logger.info(f"{message.message_id}: recorded {len(outcome.violation_ids)} violation(s)")

        for violation_id in outcome.violation_ids:
            try:
                outcome.policies_triggered += await self.policy_engine.evaluate_policies_for_violation(
                    violation_id, employee.employee_id
                )
            except Exception as e:
                logger.error(f"Policy evaluation failed for violation {violation_id}: {e}")

        outcome.employee_risk_score = await self.recompute_employee_risk(employee.employee_id)
        return outcome

    async def _ensure_employee(self, employee: EmployeeContext) -> EmployeeContext:
        """Use the stored employee when known, otherwise register the caller's context."""
        async with self.session_factory() as session:
            row = await session.get(Employee, employee.employee_id)
            if row is None:
                session.add(Employee(
                    id=employee.employee_id,
                    name=employee.name or employee.email or f"employee-{employee.employee_id}",
                    email=employee.email or None,
                    department=employee.department,
                    role=employee.role,
                    risk_score=employee.risk_score,
                    compliance_profile_id=employee.compliance_profile_id,
                ))
                await session.commit()
                return employee

            return EmployeeContext(
                employee_id=row.id,
                name=row.name or "",
                email=row.email or "",
                department=row.department,
                role=row.role,
                risk_score=row.risk_score or 0,
                compliance_profile_id=row.compliance_profile_id,
            )

    def _build_violations(
        self,
        message: Message,
        employee: EmployeeContext,
        result: ClassificationResult,
        features: MessageFeatures,
    ) -> List[ViolationRecord]:
        base = {
            "message_id": message.message_id,
            "source_platform": message.source.value,
            "risk_score": result.risk_score,
            "compliance_score": result.compliance_score,
            "method": result.method.value,
            "patterns": [p.category for p in result.patterns],
            "risk_factors": result.risk_factors,
            "external_recipients": len(features.external_recipients),
            "attachment_count": features.attachment_count,
        }

        records = []
        if result.risk_score >= SECURITY_VIOLATION_THRESHOLD:
            records.append(ViolationRecord(
                employee_id=employee.employee_id,
                type=security_violation_type(result),
                severity=security_severity(result.risk_score).value,
                description=f"Security analysis detected: {message.subject}",
                source=SECURITY_SOURCE,
                details=dict(base),
            ))

        for violation in result.violations:
            records.append(self._compliance_record(employee, violation, base))
        return records

    @staticmethod
    def _compliance_record(
        employee: EmployeeContext, violation: ComplianceViolation, base: Dict[str, Any]
    ) -> ViolationRecord:
        details = dict(base)
        details.update({
            "regulation": violation.regulation,
            "policy": violation.policy,
            "citation": violation.citation,
            "category": violation.category,
        })
        return ViolationRecord(
            employee_id=employee.employee_id,
            type=violation.type,
            severity=violation.severity.value,
            description=violation.description,
            source=COMPLIANCE_SOURCE,
            details=details,
        )

    async def _store_violations(self, records: List[ViolationRecord]) -> List[int]:
        async with self.session_factory() as session:
            session.add_all(records)
            await session.commit()
            return [record.id for record in records]

    async def recompute_employee_risk(self, employee_id: int) -> Optional[int]:
        """
        Recompute and store the employee's aggregate risk from history.

        Running it twice with no new violations leaves the score unchanged.
        """
        since = utc_now() - timedelta(days=EMPLOYEE_RISK_WINDOW_DAYS)
        try:
            async with self.session_factory() as session:
                violations = (await session.scalars(
                    select(ViolationRecord)
                    .where(
                        ViolationRecord.employee_id == employee_id,
                        ViolationRecord.status == "Active",
                        ViolationRecord.created_at >= since,
                    )
                    .order_by(ViolationRecord.created_at.desc(), ViolationRecord.id.desc())
                    .limit(EMPLOYEE_RISK_HISTORY_LIMIT)
                )).all()

                score = compute_employee_risk(violations)
                employee = await session.get(Employee, employee_id)
                if employee is None or score is None:
                    return employee.risk_score if employee else None

                employee.risk_score = score
                employee.updated_at = utc_now()
                await session.commit()
        except Exception as e:
            if is_missing_schema_error(e):
                logger.warning(f"Employee tables not ready, risk not updated: {e}")
                return None
            raise

        logger.info(f"Employee {employee_id} risk recomputed: {score}")
        return score
