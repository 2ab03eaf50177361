"""
ComplyWatch LLM Response Parser

Tolerant JSON extraction from LLM output. Each strategy is a pure function
that returns a dict or None; the chain stops at the first success and ends in
a typed empty default.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from complywatch.models.classification import ComplianceViolation, DetectedPattern, Severity
from complywatch.utils.helpers import clamp_confidence, clamp_score

logger = logging.getLogger(__name__)


def parse_strict(content: str) -> Optional[Dict[str, Any]]:
    """Whole response is a JSON object."""
    try:
        data = json.loads(content.strip())
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def parse_fenced(content: str) -> Optional[Dict[str, Any]]:
    """JSON inside a ```json or bare ``` markdown fence."""
    for marker in ("```json", "```"):
        start = content.find(marker)
        if start < 0:
            continue
        start += len(marker)
        end = content.find("```", start)
        if end > start:
            parsed = parse_strict(content[start:end])
            if parsed is not None:
                return parsed
    return None


def parse_first_object(content: str) -> Optional[Dict[str, Any]]:
    """First balanced {...} span, ignoring braces inside strings."""
    start = content.find("{")
    while start >= 0:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(content)):
            c = content[i]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    parsed = parse_strict(content[start:i + 1])
                    if parsed is not None:
                        return parsed
                    break
        start = content.find("{", start + 1)
    return None


PARSE_STRATEGIES: List[Callable[[str], Optional[Dict[str, Any]]]] = [
    parse_strict,
    parse_fenced,
    parse_first_object,
]


@dataclass
class LLMAssessment:
    """Normalised LLM classification output."""
    risk_score: int = 0
    confidence: float = 0.0
    reasoning: str = ""
    patterns: List[DetectedPattern] = field(default_factory=list)
    violations: List[ComplianceViolation] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    parsed: bool = False


def _list_field(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if isinstance(value, list):
        return value
    if value:
        logger.warning(f"LLM response field {key} is not a list, ignoring it")
    return []


def extract_json(content: Optional[str]) -> Optional[Dict[str, Any]]:
    """Run the strategy chain, returning the first parsed object."""
    if not content:
        return None
    for strategy in PARSE_STRATEGIES:
        data = strategy(content)
        if data is not None:
            return data
    return None


def parse_assessment(content: Optional[str]) -> LLMAssessment:
    """
    Parse an LLM response into an LLMAssessment.

    Never raises; unparseable content yields a zero-score, zero-confidence
    assessment with parsed=False.
    """
    data = extract_json(content)
    if data is None:
        logger.warning("LLM response could not be parsed as JSON, using empty assessment")
        return LLMAssessment()

    patterns = []
    for item in _list_field(data, "detected_patterns"):
        if isinstance(item, dict):
            matches = item.get("matches") or []
            patterns.append(DetectedPattern(
                category=str(item.get("category") or item.get("type") or "llm_pattern"),
                matches=[str(m) for m in matches] if isinstance(matches, list) else [str(matches)],
                severity=Severity.parse(item.get("severity")),
                source="llm",
            ))
        elif item:
            patterns.append(DetectedPattern(category=str(item), source="llm"))

    violations = []
    for item in _list_field(data, "violations"):
        if isinstance(item, dict):
            violations.append(ComplianceViolation(
                type=str(item.get("type") or "LLM_FINDING"),
                category=str(item.get("category") or ""),
                severity=Severity.parse(item.get("severity")),
                description=str(item.get("description") or ""),
                regulation=item.get("regulation"),
            ))
        elif item:
            violations.append(ComplianceViolation(type="LLM_FINDING", description=str(item)))

    recommendations = data.get("recommendations") or []
    if not isinstance(recommendations, list):
        recommendations = [recommendations]

    return LLMAssessment(
        risk_score=clamp_score(data.get("risk_score")),
        confidence=clamp_confidence(data.get("confidence")),
        reasoning=str(data.get("reasoning") or ""),
        patterns=patterns,
        violations=violations,
        recommendations=[str(r) for r in recommendations if r],
        parsed=True,
    )
