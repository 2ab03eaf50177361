"""
ComplyWatch Stage Scoring

Per-stage outcomes and the formulas that combine them into classification
results: stage exits, cache blending, LLM merging and the fallback result.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from complywatch.models.classification import (
    ClassificationMethod,
    ClassificationResult,
    ComplianceViolation,
    DetectedPattern,
    Severity,
)
from complywatch.models.message import EmployeeContext
from complywatch.services.ai.response_parser import LLMAssessment
from complywatch.utils.constants import (
    CACHE_BLEND_WEIGHT,
    FALLBACK_RISK_SCORE,
    HIGH_PRIORITY_KEYWORDS,
    HIGH_RISK_EMPLOYEE_THRESHOLD,
    LLM_ESCALATION_THRESHOLD,
    PATTERN_EXIT_CONFIDENCE,
    PATTERN_EXIT_MAX_COMPLIANCE,
    PATTERN_EXIT_MAX_SECURITY,
    RULES_EXIT_CONFIDENCE,
    RULES_EXIT_MAX_COMPLIANCE,
    RULES_EXIT_MAX_SECURITY,
)
from complywatch.utils.helpers import clamp_confidence, clamp_score

from .detectors import MessageFeatures


@dataclass
class StageOutcome:
    """Working score of one stage before it is combined."""
    score: int = 0
    confidence: float = 0.0
    risk_factors: List[str] = field(default_factory=list)
    patterns: List[DetectedPattern] = field(default_factory=list)
    violations: List[ComplianceViolation] = field(default_factory=list)
    safe_shortcut: bool = False

    def add(self, points: float, factor: Optional[str] = None) -> None:
        self.score = clamp_score(self.score + points)
        if factor:
            self.risk_factors.append(factor)


def _unique(items: Iterable[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def merge_violations(*groups: Iterable[ComplianceViolation]) -> List[ComplianceViolation]:
    """Concatenate violation lists, keeping the first entry per type."""
    merged: List[ComplianceViolation] = []
    seen = set()
    for group in groups:
        for violation in group:
            if violation.type in seen:
                continue
            seen.add(violation.type)
            merged.append(violation)
    return merged


def combine(
    security: StageOutcome,
    compliance: StageOutcome,
    method: ClassificationMethod,
) -> ClassificationResult:
    """security axis from one stage, compliance axis from the other, min confidence."""
    return ClassificationResult(
        risk_score=security.score,
        compliance_score=compliance.score,
        risk_factors=_unique(security.risk_factors + compliance.risk_factors),
        patterns=security.patterns + compliance.patterns,
        violations=merge_violations(security.violations, compliance.violations),
        confidence=min(security.confidence, compliance.confidence),
        method=method,
    )


def rules_stage_sufficient(result: ClassificationResult) -> bool:
    return result.confidence >= RULES_EXIT_CONFIDENCE or (
        result.risk_score <= RULES_EXIT_MAX_SECURITY
        and result.compliance_score <= RULES_EXIT_MAX_COMPLIANCE
    )


def pattern_stage_sufficient(result: ClassificationResult) -> bool:
    return result.confidence >= PATTERN_EXIT_CONFIDENCE or (
        result.risk_score <= PATTERN_EXIT_MAX_SECURITY
        and result.compliance_score <= PATTERN_EXIT_MAX_COMPLIANCE
    )


def blend_cached(current: ClassificationResult, cached: ClassificationResult) -> ClassificationResult:
    """Add a weighted share of a similar message's prior result."""
    return current.model_copy(update={
        "risk_score": clamp_score(current.risk_score + cached.risk_score * CACHE_BLEND_WEIGHT),
        "compliance_score": clamp_score(
            current.compliance_score + cached.compliance_score * CACHE_BLEND_WEIGHT
        ),
        "confidence": max(current.confidence, cached.confidence),
        "risk_factors": _unique(current.risk_factors + ["Similar pattern detected"]),
        "violations": merge_violations(current.violations, cached.violations),
        "method": ClassificationMethod.CACHED,
    })


def merge_llm(current: ClassificationResult, assessment: LLMAssessment) -> ClassificationResult:
    """Fold an LLM assessment into the pattern-stage result."""
    factors = list(current.risk_factors)
    if assessment.reasoning:
        factors.append(f"LLM: {assessment.reasoning}")
    return current.model_copy(update={
        "risk_score": max(current.risk_score, clamp_score(assessment.risk_score)),
        "confidence": max(current.confidence, clamp_confidence(assessment.confidence)),
        "risk_factors": _unique(factors),
        "patterns": current.patterns + assessment.patterns,
        "violations": merge_violations(current.violations, assessment.violations),
        "recommendations": _unique(current.recommendations + assessment.recommendations),
        "method": ClassificationMethod.LLM_ENHANCED,
    })


def is_high_priority(content: str) -> bool:
    return any(keyword in content for keyword in HIGH_PRIORITY_KEYWORDS)


def should_escalate(
    result: ClassificationResult,
    features: MessageFeatures,
    employee: EmployeeContext,
) -> bool:
    """Whether the result warrants a call to the LLM classification service."""
    high_patterns = any(p.severity in (Severity.HIGH, Severity.CRITICAL) for p in result.patterns)
    return (
        result.risk_score >= LLM_ESCALATION_THRESHOLD
        or high_patterns
        or employee.risk_score >= HIGH_RISK_EMPLOYEE_THRESHOLD
        or (features.has_external_recipients and features.has_attachments)
        or is_high_priority(features.content)
    )


def fallback_result(error: Exception) -> ClassificationResult:
    return ClassificationResult(
        risk_score=FALLBACK_RISK_SCORE,
        compliance_score=0,
        confidence=0.0,
        risk_factors=["Analysis error occurred"],
        method=ClassificationMethod.FALLBACK,
        error=str(error) or type(error).__name__,
    )
