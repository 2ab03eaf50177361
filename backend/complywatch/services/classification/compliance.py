"""
ComplyWatch Compliance Overlay

Regulation and internal-policy detectors producing the compliance axis of a
classification: a cheap prescreen and a detailed, profile-driven analysis.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from complywatch.database import ComplianceProfileRecord
from complywatch.models.classification import ComplianceViolation, Severity
from complywatch.models.message import EmployeeContext
from complywatch.utils.constants import DEFAULT_PROFILE_NAME, DEPARTMENT_PROFILE_FALLBACK

from . import detectors
from .detectors import MessageFeatures
from .lookups import TTLLookup
from .scoring import StageOutcome

logger = logging.getLogger(__name__)

PRESCREEN_CONFIDENCE = 0.9
DETAILED_CONFIDENCE = 0.8


# =============================================================================
# PROFILES
# =============================================================================

@dataclass
class ComplianceProfile:
    """Regulations and internal policies that apply to an employee."""
    name: str
    applicable_regulations: List[str] = field(default_factory=list)
    applicable_policies: List[str] = field(default_factory=list)
    monitoring_level: str = "standard"
    data_classification: str = "internal"
    profile_id: Optional[int] = None


DEFAULT_PROFILES: List[ComplianceProfile] = [
    ComplianceProfile("Standard Employee", ["gdpr"], ["external_communication"],
                      "standard", "internal", profile_id=1),
    ComplianceProfile("Finance Team", ["gdpr", "sox", "pci_dss"],
                      ["external_communication", "data_retention"],
                      "enhanced", "confidential", profile_id=2),
    ComplianceProfile("IT Administration", ["gdpr", "pci_dss", "hipaa"],
                      ["external_communication", "data_retention"],
                      "strict", "restricted", profile_id=3),
]


def fallback_profile_name(department: Optional[str]) -> str:
    return DEPARTMENT_PROFILE_FALLBACK.get((department or "").strip().lower(), DEFAULT_PROFILE_NAME)


def select_profile(profiles: List[ComplianceProfile], employee: EmployeeContext) -> Optional[ComplianceProfile]:
    """Profile by explicit id, else by department fallback name."""
    if employee.compliance_profile_id is not None:
        for profile in profiles:
            if profile.profile_id == employee.compliance_profile_id:
                return profile
    name = fallback_profile_name(employee.department)
    for profile in profiles:
        if profile.name == name:
            return profile
    return None


class ComplianceProfileProvider(ABC):
    """Resolves the compliance profile for an employee."""

    @abstractmethod
    async def get_profile(self, employee: EmployeeContext) -> Optional[ComplianceProfile]:
        pass


class StaticComplianceProfileProvider(ComplianceProfileProvider):
    """In-memory profiles; the built-in defaults when none are given."""

    def __init__(self, profiles: Optional[List[ComplianceProfile]] = None):
        self.profiles = list(profiles) if profiles is not None else list(DEFAULT_PROFILES)

    async def get_profile(self, employee: EmployeeContext) -> Optional[ComplianceProfile]:
        return select_profile(self.profiles, employee)


class DatabaseComplianceProfileProvider(ComplianceProfileProvider):
    """Profiles from the compliance_profiles table with a TTL cache."""

    def __init__(self, session_factory: async_sessionmaker, ttl_seconds: float = 600):
        self.session_factory = session_factory
        self.lookup: TTLLookup[List[ComplianceProfile]] = TTLLookup(
            name="compliance profiles",
            loader=self._load,
            default=lambda: list(DEFAULT_PROFILES),
            ttl_seconds=ttl_seconds,
        )

    async def refresh(self) -> List[ComplianceProfile]:
        return await self.lookup.refresh()

    async def get_profile(self, employee: EmployeeContext) -> Optional[ComplianceProfile]:
        return select_profile(await self.lookup.get(), employee)

    async def _load(self) -> List[ComplianceProfile]:
        async with self.session_factory() as session:
            records = (await session.execute(select(ComplianceProfileRecord))).scalars().all()
        return [
            ComplianceProfile(
                name=r.name,
                applicable_regulations=[str(c).lower() for c in (r.applicable_regulations or [])],
                applicable_policies=[str(c).lower() for c in (r.applicable_policies or [])],
                monitoring_level=r.monitoring_level or "standard",
                data_classification=r.data_classification or "internal",
                profile_id=r.id,
            )
            for r in records
        ]


# =============================================================================
# PRESCREEN
# =============================================================================

def prescreen(features: MessageFeatures, employee: EmployeeContext) -> StageOutcome:
    """Cheap regulation screen; confidence 0.9."""
    outcome = StageOutcome(confidence=PRESCREEN_CONFIDENCE)

    if detectors.has_gdpr_risk(features):
        outcome.add(30)
        outcome.violations.append(ComplianceViolation(
            type="GDPR", category="data_protection", severity=Severity.MEDIUM,
            description="Potential GDPR data handling issue detected", regulation="GDPR",
        ))

    if detectors.has_pci_risk(features):
        outcome.add(40)
        outcome.violations.append(ComplianceViolation(
            type="PCI_DSS", category="payment_data", severity=Severity.HIGH,
            description="Potential payment card data exposure", regulation="PCI_DSS",
        ))

    if detectors.has_sox_risk(features, employee.department):
        outcome.add(35)
        outcome.violations.append(ComplianceViolation(
            type="SOX", category="financial_controls", severity=Severity.HIGH,
            description="Potential financial reporting control violation", regulation="SOX",
        ))

    if detectors.has_hipaa_risk(features):
        outcome.add(45)
        outcome.violations.append(ComplianceViolation(
            type="HIPAA", category="health_information", severity=Severity.CRITICAL,
            description="Potential protected health information exposure", regulation="HIPAA",
        ))

    return outcome


# =============================================================================
# DETAILED ANALYSIS
# =============================================================================

@dataclass
class Finding:
    """Score and violations one detector contributes."""
    score: int = 0
    violations: List[ComplianceViolation] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


def analyze_gdpr(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    personal = detectors.has_personal_identifiers(features.content)

    if personal and features.has_external_recipients:
        finding.score += 40
        finding.violations.append(ComplianceViolation(
            type="GDPR_DATA_TRANSFER", category="data_protection", severity=Severity.HIGH,
            description="Personal data transferred to external recipients without verified consent",
            regulation="GDPR", citation="Article 6 (Lawful basis for processing)",
        ))
    if "delete" in features.content and personal:
        finding.score += 25
        finding.violations.append(ComplianceViolation(
            type="GDPR_RIGHT_TO_ERASURE", category="data_subject_rights", severity=Severity.MEDIUM,
            description="Potential right to erasure request involving personal data",
            regulation="GDPR", citation="Article 17 (Right to erasure)",
        ))
    if "breach" in features.content or "incident" in features.content:
        finding.score += 30
        finding.violations.append(ComplianceViolation(
            type="GDPR_BREACH_NOTIFICATION", category="security_breach", severity=Severity.HIGH,
            description="Potential data breach requiring notification within 72 hours",
            regulation="GDPR", citation="Article 33 (Notification of a personal data breach)",
        ))
    return finding


def analyze_pci_dss(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    if detectors.has_pci_risk(features):
        finding.score += 50
        finding.violations.append(ComplianceViolation(
            type="PCI_CARDHOLDER_DATA_EXPOSURE", category="payment_security", severity=Severity.CRITICAL,
            description="Cardholder data transmitted via insecure channel",
            regulation="PCI_DSS", citation="Requirement 4 (Encrypt transmission of cardholder data)",
        ))
    return finding


def analyze_sox(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    if detectors.has_sox_risk(features, employee.department):
        finding.score += 45
        finding.violations.append(ComplianceViolation(
            type="SOX_FINANCIAL_DISCLOSURE", category="financial_controls", severity=Severity.HIGH,
            description="Financial information shared externally without proper controls",
            regulation="SOX", citation="Section 404 (Management Assessment of Internal Controls)",
        ))
    return finding


def analyze_hipaa(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    if not detectors.has_hipaa_risk(features):
        return finding

    if detectors.has_medical_terms(features.content):
        finding.score += 60
        finding.violations.append(ComplianceViolation(
            type="HIPAA_PHI_EXPOSURE", category="health_information", severity=Severity.CRITICAL,
            description="Protected Health Information transmitted via insecure channel",
            regulation="HIPAA", citation="Security Rule (45 CFR 164.312)",
        ))
    else:
        finding.score += 40
        finding.violations.append(ComplianceViolation(
            type="HIPAA_POTENTIAL_PHI_APPOINTMENT", category="health_information", severity=Severity.HIGH,
            description="Appointment message may reveal patient identity without explicit medical details",
            regulation="HIPAA", citation="Security Rule (45 CFR 164.312)",
        ))
    return finding


def analyze_external_communication(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    if not features.has_external_recipients:
        return finding

    if detectors.has_sensitive_data(features.content):
        finding.score += 35
        finding.violations.append(ComplianceViolation(
            type="EXTERNAL_COMM_SENSITIVE_DATA", category="policy_violation", severity=Severity.HIGH,
            description="Sensitive data shared with external recipients",
            policy="external_communication", citation="External Data Sharing Controls",
        ))
    if features.has_attachments:
        finding.score += 25
        finding.violations.append(ComplianceViolation(
            type="EXTERNAL_FILE_SHARING", category="policy_violation", severity=Severity.MEDIUM,
            description="File attachments sent to external recipients",
            policy="external_communication", citation="File Transfer Monitoring",
        ))
    return finding


def analyze_data_retention(features: MessageFeatures, employee: EmployeeContext) -> Finding:
    finding = Finding()
    if any(word in features.content for word in ("delete", "purge", "archive")):
        finding.score += 20
        finding.notes.append("Data retention action detected")
    return finding


Detector = Callable[[MessageFeatures, EmployeeContext], Finding]

REGULATION_DETECTORS: Dict[str, Detector] = {
    "gdpr": analyze_gdpr,
    "pci_dss": analyze_pci_dss,
    "sox": analyze_sox,
    "hipaa": analyze_hipaa,
}

POLICY_DETECTORS: Dict[str, Detector] = {
    "external_communication": analyze_external_communication,
    "data_retention": analyze_data_retention,
}


class ComplianceAnalyzer:
    """Detailed, profile-driven compliance analysis."""

    def __init__(self, profile_provider: ComplianceProfileProvider):
        self.profile_provider = profile_provider

    async def applicable_regulations(self, employee: EmployeeContext) -> List[str]:
        profile = await self.profile_provider.get_profile(employee)
        return [code.upper() for code in profile.applicable_regulations] if profile else []

    async def analyze(
        self,
        features: MessageFeatures,
        employee: EmployeeContext,
        base: StageOutcome,
    ) -> StageOutcome:
        """Start from the prescreen outcome and add per-detector findings."""
        outcome = StageOutcome(
            score=base.score,
            confidence=DETAILED_CONFIDENCE,
            risk_factors=list(base.risk_factors),
            violations=list(base.violations),
        )

        profile = await self.profile_provider.get_profile(employee)
        if profile is None:
            logger.warning(f"No compliance profile found for employee {employee.employee_id}")
            return outcome

        checks = [(code, REGULATION_DETECTORS.get(code)) for code in profile.applicable_regulations]
        checks += [(code, POLICY_DETECTORS.get(code)) for code in profile.applicable_policies]

        for code, detector in checks:
            if detector is None:
                logger.debug(f"No detector for compliance code {code}")
                continue
            finding = detector(features, employee)
            if finding.score <= 0:
                continue
            outcome.add(finding.score)
            outcome.violations.extend(finding.violations)
            outcome.risk_factors.extend(finding.notes)

        return outcome
