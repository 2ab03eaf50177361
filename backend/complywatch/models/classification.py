"""
ComplyWatch Classification Data Models

Pydantic models for tiered classification results.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum

from complywatch.utils.helpers import clamp_confidence, clamp_score, get_risk_level, utc_now


class Severity(str, Enum):
    """Severity of a pattern or violation."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value, default: "Severity" = None) -> "Severity":
        """Case-insensitive lookup, falling back to default (Medium)."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return default or cls.MEDIUM


class ClassificationMethod(str, Enum):
    """Stage a classification exited at."""
    RULES_ONLY = "rules-only"
    PATTERN_ENHANCED = "pattern-enhanced"
    CACHED = "cached"
    LLM_ENHANCED = "llm-enhanced"
    FALLBACK = "fallback"


class DetectedPattern(BaseModel):
    """Pattern hit reported by a classification stage."""
    model_config = ConfigDict(frozen=True)

    category: str = Field(..., description="Pattern or category name")
    matches: List[str] = Field(default_factory=list, description="Matched terms")
    severity: Severity = Field(Severity.LOW)
    source: str = Field("rules", description="Stage that produced the pattern")
    score: int = Field(0, description="Points contributed")


class ComplianceViolation(BaseModel):
    """Compliance or security violation stub."""
    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Regulation or violation code, e.g. PCI_DSS")
    category: str = Field("", description="Violation category")
    severity: Severity = Field(Severity.MEDIUM)
    description: str = Field("")
    regulation: Optional[str] = Field(None, description="Regulation code")
    policy: Optional[str] = Field(None, description="Internal policy code")
    citation: Optional[str] = Field(None, description="Article or section reference")


class ClassificationResult(BaseModel):
    """
    Outcome of classifying one message.

    Scores are clamped to integers in [0, 100] on construction, so every
    combination point goes through the same clamp.
    """
    model_config = ConfigDict(frozen=True)

    risk_score: int = Field(0, ge=0, le=100, description="Security axis score")
    compliance_score: int = Field(0, ge=0, le=100, description="Compliance axis score")
    risk_factors: List[str] = Field(default_factory=list)
    patterns: List[DetectedPattern] = Field(default_factory=list)
    violations: List[ComplianceViolation] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    method: ClassificationMethod = Field(ClassificationMethod.RULES_ONLY)
    analyzed_at: datetime = Field(default_factory=utc_now)
    error: Optional[str] = Field(None)

    @field_validator("risk_score", "compliance_score", mode="before")
    @classmethod
    def _clamp_scores(cls, value):
        return clamp_score(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        return clamp_confidence(value)

    @property
    def overall_score(self) -> int:
        return max(self.risk_score, self.compliance_score)

    @property
    def risk_level(self) -> str:
        return get_risk_level(self.overall_score)

    @property
    def max_pattern_severity(self) -> Optional[Severity]:
        order = list(Severity)
        if not self.patterns:
            return None
        return max((p.severity for p in self.patterns), key=order.index)
