"""
ComplyWatch Ingestion Tests

Tests for turning classifications into violations, policy executions and
employee risk.
"""

from sqlalchemy import select

from complywatch.models.message import EmployeeContext, Message


def create_test_violation(severity="High", source="security_analysis", **details):
    from complywatch.database import ViolationRecord

    return ViolationRecord(employee_id=1, type="Data Exfiltration", severity=severity, source=source, details=details)


def create_card_message():
    return Message(
        message_id="msg-card",
        subject="Order",
        body="Here is the card 4111 1111 1111 1111 for the order",
        sender="alice@company.com",
        recipients=["buyer@gmail.com"],
    )


class TestViolationNaming:
    """Tests for security violation type and severity."""

    def test_strongest_category_wins(self):
        from complywatch.models.classification import ClassificationResult, DetectedPattern
        from complywatch.services.ingestion import security_violation_type

        result = ClassificationResult(risk_score=80, patterns=[
            DetectedPattern(category="Phishing", source="categories", score=20),
            DetectedPattern(category="Data Exfiltration", source="categories", score=45),
            DetectedPattern(category="keyword_hit", source="rules", score=90),
        ])

        assert security_violation_type(result) == "Data Exfiltration"

    def test_falls_back_to_risk_factors(self):
        from complywatch.models.classification import ClassificationResult
        from complywatch.services.ingestion import security_violation_type

        external = ClassificationResult(risk_score=75, risk_factors=["External recipients detected"])
        plain = ClassificationResult(risk_score=75, risk_factors=["Off-hours activity"])

        assert security_violation_type(external) == "Unauthorized Communication"
        assert security_violation_type(plain) == "Security Policy Violation"

    def test_severity_bands(self):
        from complywatch.models.classification import Severity
        from complywatch.services.ingestion import security_severity

        assert security_severity(95) == Severity.CRITICAL
        assert security_severity(85) == Severity.HIGH
        assert security_severity(70) == Severity.MEDIUM


class TestEmployeeRisk:
    """Tests for compute_employee_risk."""

    def test_no_history(self):
        from complywatch.services.ingestion import compute_employee_risk

        assert compute_employee_risk([]) is None

    def test_single_violation(self):
        from complywatch.services.ingestion import compute_employee_risk

        # 0.6 * 80 + 0.3 * (15 + 5)
        assert compute_employee_risk([create_test_violation(risk_score=80)]) == 54

    def test_compliance_penalty_and_recency(self):
        from complywatch.services.ingestion import compute_employee_risk

        violations = [
            create_test_violation(severity="Medium", source="compliance_analysis", risk_score=0, compliance_score=60),
            create_test_violation(risk_score=80),
        ]

        assert compute_employee_risk(violations) == 54

    def test_severity_used_without_scores(self):
        from complywatch.services.ingestion import compute_employee_risk

        # 0.6 * 90 + 0.3 * (25 + 5)
        assert compute_employee_risk([create_test_violation(severity="Critical")]) == 63

    def test_deterministic(self):
        from complywatch.services.ingestion import compute_employee_risk

        violations = [create_test_violation(risk_score=s) for s in (90, 40, 75)]
        assert compute_employee_risk(violations) == compute_employee_risk(violations)


class TestMessageIngestion:
    """Tests for MessageIngestionService."""

    def test_card_message_records_compliance_violation_and_triggers_policy(self, run_with_db):
        from complywatch.database import Employee, PolicyExecutionRecord, SecurityPolicy, ViolationRecord
        from complywatch.services.classification import TieredClassifier
        from complywatch.services.ingestion import MessageIngestionService

        async def scenario(session_factory):
            async with session_factory() as session:
                session.add(SecurityPolicy(name="Everything"))
                await session.commit()

            service = MessageIngestionService(session_factory, TieredClassifier())
            employee = EmployeeContext(employee_id=42, name="Alice Example", email="alice@company.com", department="Sales")
            outcome = await service.ingest(create_card_message(), employee)

            async with session_factory() as session:
                violations = (await session.scalars(select(ViolationRecord))).all()
                executions = (await session.scalars(select(PolicyExecutionRecord))).all()
                stored = await session.get(Employee, 42)
            return outcome, violations, executions, stored

        outcome, violations, executions, stored = run_with_db(scenario)

        compliance = [v for v in violations if v.source == "compliance_analysis"]
        assert any(v.type == "PCI_DSS" for v in compliance)
        assert compliance[0].details["message_id"] == "msg-card"
        assert compliance[0].details["external_recipients"] == 1
        assert sorted(outcome.violation_ids) == sorted(v.id for v in violations)
        assert outcome.policies_triggered == len(violations)
        assert len(executions) == len(violations)
        assert stored.name == "Alice Example"
        assert stored.risk_score == outcome.employee_risk_score
        assert outcome.employee_risk_score is not None

    def test_safe_message_records_nothing(self, run_with_db):
        from complywatch.services.classification import TieredClassifier
        from complywatch.services.ingestion import MessageIngestionService

        async def scenario(session_factory):
            service = MessageIngestionService(session_factory, TieredClassifier())
            message = Message(
                message_id="msg-safe",
                subject="Lunch",
                body="Thanks, see you at lunch",
                sender="alice@company.com",
                recipients=["bob@company.com"],
            )
            employee = EmployeeContext(employee_id=5, name="Alice", email="alice@company.com", risk_score=12)
            return await service.ingest(message, employee)

        outcome = run_with_db(scenario)

        assert outcome.violation_ids == []
        assert outcome.policies_triggered == 0
        # no history leaves the stored score alone
        assert outcome.employee_risk_score == 12

    def test_recompute_is_stable(self, run_with_db):
        from complywatch.database import Employee
        from complywatch.services.classification import TieredClassifier
        from complywatch.services.ingestion import MessageIngestionService

        async def scenario(session_factory):
            async with session_factory() as session:
                session.add(Employee(id=9, name="Sam", email="sam@company.com", risk_score=0))
                violation = create_test_violation(risk_score=80)
                violation.employee_id = 9
                session.add(violation)
                await session.commit()
            service = MessageIngestionService(session_factory, TieredClassifier())
            return await service.recompute_employee_risk(9), await service.recompute_employee_risk(9)

        first, second = run_with_db(scenario)

        assert first == second == 54
