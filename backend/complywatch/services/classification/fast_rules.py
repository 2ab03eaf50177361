"""
ComplyWatch Fast Rule Scorer

First classification stage: weighted keyword rules plus recipient,
attachment and timing heuristics over a single message.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from complywatch.models.classification import DetectedPattern, Severity

from .detectors import MessageFeatures
from .scoring import StageOutcome

logger = logging.getLogger(__name__)

# Content is capped before rule matching.
CONTENT_LIMIT = 1000
SAFE_CONTENT_LENGTH = 100
LARGE_RECIPIENT_LIST = 10


@dataclass(frozen=True)
class KeywordRule:
    name: str
    pattern: re.Pattern
    score: int
    factor: str

    @property
    def severity(self) -> Severity:
        if self.score >= 20:
            return Severity.HIGH
        if self.score >= 10:
            return Severity.MEDIUM
        return Severity.LOW


HIGH_RISK_RULES: List[KeywordRule] = [
    KeywordRule("credentials", re.compile(r'\b(password|credential|login|secret|api[_\s]?key)\b'),
                25, "Sensitive credentials mentioned"),
    KeywordRule("confidential_markers", re.compile(r'\b(confidential|proprietary|classified|nda)\b'),
                20, "Confidential content markers"),
    KeywordRule("competitor_reference", re.compile(r'\b(competitor|rival|competing)\b'),
                15, "Competitor references"),
    KeywordRule("employment_termination", re.compile(r'\b(resignation|quit|leaving|terminate)\b'),
                20, "Employment termination indicators"),
    KeywordRule("data_extraction",
                re.compile(r'\b(download|backup|copy|export|extract)\b.*\b(database|data|file)\b'),
                30, "Data extraction activity"),
]

MEDIUM_RISK_RULES: List[KeywordRule] = [
    KeywordRule("urgency", re.compile(r'\b(urgent|immediate|asap|emergency)\b'),
                10, "Urgency pressure"),
    KeywordRule("business_opportunity", re.compile(r'\b(offer|opportunity|deal|proposal)\b'),
                8, "Business opportunity"),
    KeywordRule("external_meeting",
                re.compile(r'\b(meeting|call|discussion)\b.*\b(external|outside|client)\b'),
                12, "External communications"),
]

SAFE_TEMPLATES = [
    re.compile(r'^(re:|fwd:|meeting|calendar|invitation)'),
    re.compile(r'\b(newsletter|update|notification|reminder)\b'),
    re.compile(r'\b(thank you|thanks|congratulations|welcome)\b'),
]


class FastRuleScorer:
    """Cheap, deterministic first pass."""

    def __init__(self, business_hours_start: int = 8, business_hours_end: int = 18):
        self.business_hours_start = business_hours_start
        self.business_hours_end = business_hours_end
        self.rules = HIGH_RISK_RULES + MEDIUM_RISK_RULES

    def is_obviously_safe(self, features: MessageFeatures, content: str) -> bool:
        """Internal-only, short, and shaped like a benign template."""
        return (
            not features.has_external_recipients
            and len(content) < SAFE_CONTENT_LENGTH
            and any(p.search(content) for p in SAFE_TEMPLATES)
        )

    def score(self, features: MessageFeatures) -> StageOutcome:
        content = features.content[:CONTENT_LIMIT]

        if self.is_obviously_safe(features, content):
            return StageOutcome(score=0, confidence=0.95, safe_shortcut=True)

        outcome = StageOutcome(confidence=0.9)
        hits = 0
        for rule in self.rules:
            match = rule.pattern.search(content)
            if not match:
                continue
            hits += 1
            outcome.add(rule.score, rule.factor)
            outcome.patterns.append(DetectedPattern(
                category=rule.name,
                matches=[match.group(0)[:80]],
                severity=rule.severity,
                source="rules",
                score=rule.score,
            ))

        self._score_recipients(features, outcome)
        self._score_attachments(features, outcome)
        self._score_timing(features, outcome)

        if hits:
            outcome.confidence = round(min(0.9, 0.6 + 0.1 * hits), 2)

        return outcome

    def _score_recipients(self, features: MessageFeatures, outcome: StageOutcome) -> None:
        if features.recipient_count > LARGE_RECIPIENT_LIST:
            outcome.add(15, "Large recipient list")
        if features.has_external_recipients:
            outcome.add(20, "External recipients detected")

    def _score_attachments(self, features: MessageFeatures, outcome: StageOutcome) -> None:
        if not features.has_attachments:
            return
        outcome.add(10, f"{features.attachment_count} attachment(s)")
        if features.risky_attachments:
            outcome.add(20, "High-risk file types detected")

    def _score_timing(self, features: MessageFeatures, outcome: StageOutcome) -> None:
        sent_at = features.sent_at
        if sent_at is None:
            return
        off_hours = sent_at.hour < self.business_hours_start or sent_at.hour >= self.business_hours_end
        if off_hours or sent_at.weekday() >= 5:
            outcome.add(15, "Sent outside business hours")
