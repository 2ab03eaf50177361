"""
ComplyWatch Pattern/Category Scorer

Weighted keyword categories layered on the fast rule result. Categories are
read from the threat_categories tables and cached with a TTL; built-in
defaults apply while the tables are empty or missing.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from complywatch.database import CategoryKeyword, ThreatCategory
from complywatch.models.classification import DetectedPattern, Severity
from complywatch.utils.constants import SEVERITY_MULTIPLIERS

from .lookups import TTLLookup
from .scoring import StageOutcome

logger = logging.getLogger(__name__)

DEFAULT_KEYWORD_WEIGHT = 10.0
CATEGORY_SCORE_CAP = 75.0
RELEVANCE_THRESHOLD = 15
SIGNIFICANT_THRESHOLD = 20
CATEGORY_WEIGHT = 0.3
CONFIDENCE_CAP = 0.85


@dataclass
class CategoryDefinition:
    """Threat category with keyword weights (points per matched keyword)."""
    name: str
    severity: Severity = Severity.MEDIUM
    base_risk_score: int = 50
    keywords: Dict[str, float] = field(default_factory=dict)


DEFAULT_CATEGORIES: List[CategoryDefinition] = [
    CategoryDefinition("Data Exfiltration", Severity.CRITICAL, 80, {
        "export data": 15, "download database": 18, "backup": 12, "transfer files": 13,
        "personal account": 16, "dropbox": 14, "google drive": 14, "usb drive": 17,
        "external drive": 16,
    }),
    CategoryDefinition("Intellectual Property Theft", Severity.HIGH, 75, {
        "source code": 18, "proprietary": 15, "trade secret": 19, "patent": 16,
        "confidential": 14, "algorithm": 15, "research data": 17,
    }),
    CategoryDefinition("Expense Fraud", Severity.HIGH, 65, {
        "duplicate receipt": 18, "personal expense": 16, "reimbursement": 13,
        "receipt": 12, "expense report": 14,
    }),
    CategoryDefinition("Vendor Kickbacks", Severity.CRITICAL, 85, {
        "kickback": 20, "personal benefit": 17, "cash payment": 18, "gift": 14,
        "commission": 16,
    }),
    CategoryDefinition("Pre-Termination Indicators", Severity.MEDIUM, 60, {
        "job interview": 18, "new position": 16, "two weeks notice": 19,
        "last day": 15, "recruiter": 14,
    }),
    CategoryDefinition("Competitor Communication", Severity.HIGH, 70, {
        "competitor": 16, "pricing strategy": 17, "roadmap": 14, "customer list": 18,
    }),
]


def score_category(content: str, category: CategoryDefinition) -> Tuple[float, List[str]]:
    """
    Score one category against lowercased content.

    Sum of matched keyword weights, scaled by base risk / 50 and the severity
    multiplier, boosted for multiple matches and capped at 75.
    """
    matched = [k for k in category.keywords if k.lower() in content]
    if not matched:
        return 0.0, []

    score = sum(category.keywords[k] or DEFAULT_KEYWORD_WEIGHT for k in matched)
    score *= (category.base_risk_score or 50) / 50
    score *= SEVERITY_MULTIPLIERS.get(category.severity.value, 1.0)

    if len(matched) >= 3:
        score *= 1.5
    elif len(matched) >= 2:
        score *= 1.2

    return min(score, CATEGORY_SCORE_CAP), matched


class CategoryStore:
    """TTL-cached threat categories."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None, ttl_seconds: float = 300):
        self.session_factory = session_factory
        self.lookup: TTLLookup[List[CategoryDefinition]] = TTLLookup(
            name="threat categories",
            loader=self._load,
            default=lambda: list(DEFAULT_CATEGORIES),
            ttl_seconds=ttl_seconds,
        )

    @property
    def last_updated(self):
        return self.lookup.last_updated

    async def get_categories(self) -> List[CategoryDefinition]:
        return await self.lookup.get()

    async def refresh(self) -> List[CategoryDefinition]:
        return await self.lookup.refresh()

    async def _load(self) -> Optional[List[CategoryDefinition]]:
        if self.session_factory is None:
            return None

        async with self.session_factory() as session:
            categories = (await session.execute(
                select(ThreatCategory).where(ThreatCategory.is_active.is_(True))
            )).scalars().all()
            keywords = (await session.execute(select(CategoryKeyword))).scalars().all()

        by_category: Dict[int, Dict[str, float]] = {}
        for keyword in keywords:
            by_category.setdefault(keyword.category_id, {})[keyword.keyword.lower()] = (
                keyword.weight or DEFAULT_KEYWORD_WEIGHT
            )

        return [
            CategoryDefinition(
                name=c.name,
                severity=Severity.parse(c.severity),
                base_risk_score=c.base_risk_score or 50,
                keywords=by_category.get(c.id, {}),
            )
            for c in categories
        ]


class PatternScorer:
    """Applies category scores on top of a combined rules-stage result."""

    def __init__(self, store: CategoryStore):
        self.store = store

    async def score(self, content: str, base: StageOutcome) -> StageOutcome:
        outcome = StageOutcome(
            score=base.score,
            confidence=base.confidence,
            risk_factors=list(base.risk_factors),
            patterns=list(base.patterns),
        )

        significant = 0
        for category in await self.store.get_categories():
            category_score, matched = score_category(content, category)
            if category_score <= RELEVANCE_THRESHOLD:
                continue
            outcome.add(round(category_score * CATEGORY_WEIGHT), f"{category.name} indicators detected")
            outcome.patterns.append(DetectedPattern(
                category=category.name,
                matches=matched,
                severity=category.severity,
                source="categories",
                score=round(category_score),
            ))
            if category_score > SIGNIFICANT_THRESHOLD:
                significant += 1

        if significant:
            outcome.confidence = min(CONFIDENCE_CAP, outcome.confidence + 0.1 * significant)

        return outcome
