"""
ComplyWatch Tiered Classifier

Escalation controller for message classification. A message moves through
increasingly expensive stages and stops at the first one that is confident
enough:

    fast rules + compliance prescreen  -> rules-only
    categories + detailed compliance   -> pattern-enhanced
    signature cache                    -> cached
    external LLM service               -> llm-enhanced
"""

import logging
from typing import Any, Dict, Iterable, Optional

from complywatch.models.classification import ClassificationMethod, ClassificationResult
from complywatch.models.message import EmployeeContext, Message
from complywatch.services.ai.analyzer import AIClassifier
from complywatch.services.ai.base import AIProviderError
from complywatch.services.ai.prompts import build_classification_prompt

from . import scoring
from .categories import CategoryStore, PatternScorer
from .compliance import (
    ComplianceAnalyzer,
    ComplianceProfileProvider,
    StaticComplianceProfileProvider,
    prescreen,
)
from .detectors import MessageFeatures
from .fast_rules import FastRuleScorer
from .signature_cache import SignatureCache, compute_signature
from .stats import ProcessingStats

logger = logging.getLogger(__name__)


class TieredClassifier:
    """
    Cost-aware message classifier.

    classify() never raises: any internal failure yields the fallback result.
    """

    def __init__(
        self,
        internal_domains: Iterable[str] = ("company.com",),
        category_store: Optional[CategoryStore] = None,
        profile_provider: Optional[ComplianceProfileProvider] = None,
        cache: Optional[SignatureCache] = None,
        ai_classifier: Optional[AIClassifier] = None,
        business_hours_start: int = 8,
        business_hours_end: int = 18,
    ):
        self.internal_domains = list(internal_domains)
        self.fast_rules = FastRuleScorer(business_hours_start, business_hours_end)
        self.pattern_scorer = PatternScorer(category_store or CategoryStore())
        self.compliance = ComplianceAnalyzer(profile_provider or StaticComplianceProfileProvider())
        self.cache = cache if cache is not None else SignatureCache()
        self.ai_classifier = ai_classifier
        self.stats = ProcessingStats()

    async def classify(self, message: Message, employee: EmployeeContext) -> ClassificationResult:
        try:
            result = await self._run_stages(message, employee)
        except Exception as e:
            logger.error(f"Classification of {message.message_id} failed: {e}", exc_info=True)
            result = scoring.fallback_result(e)

        self.stats.record(result.method)
        return result

    async def _run_stages(self, message: Message, employee: EmployeeContext) -> ClassificationResult:
        features = MessageFeatures.from_message(message, self.internal_domains)

        # Stages 1-3: fast rules, prescreen, combine
        fast = self.fast_rules.score(features)
        screened = prescreen(features, employee)

        if fast.safe_shortcut and not screened.violations:
            logger.info(f"{message.message_id}: safe shortcut, rules-only")
            empty = scoring.StageOutcome(confidence=fast.confidence)
            return scoring.combine(fast, empty, ClassificationMethod.RULES_ONLY)

        combined = scoring.combine(fast, screened, ClassificationMethod.RULES_ONLY)
        if scoring.rules_stage_sufficient(combined):
            logger.info(
                f"{message.message_id}: rules sufficient "
                f"(security {combined.risk_score}, compliance {combined.compliance_score})"
            )
            return combined

        # Stages 4-6: categories, detailed compliance, combine
        security = scoring.StageOutcome(
            score=combined.risk_score,
            confidence=combined.confidence,
            risk_factors=list(fast.risk_factors),
            patterns=list(combined.patterns),
        )
        patterned = await self.pattern_scorer.score(features.content, security)
        detailed = await self.compliance.analyze(features, employee, screened)

        enhanced = scoring.combine(patterned, detailed, ClassificationMethod.PATTERN_ENHANCED)
        if scoring.pattern_stage_sufficient(enhanced):
            logger.info(
                f"{message.message_id}: pattern stage sufficient "
                f"(security {enhanced.risk_score}, compliance {enhanced.compliance_score})"
            )
            return enhanced

        # Stage 7: signature cache
        signature = compute_signature(message)
        cached = self.cache.get(signature)
        if cached is not None:
            logger.info(f"{message.message_id}: using cached result for signature {signature}")
            return scoring.blend_cached(enhanced, cached)

        # Stages 8-9: LLM escalation
        if not scoring.should_escalate(enhanced, features, employee):
            return enhanced

        return await self._escalate(message, employee, enhanced, signature)

    async def _escalate(
        self,
        message: Message,
        employee: EmployeeContext,
        enhanced: ClassificationResult,
        signature: str,
    ) -> ClassificationResult:
        if self.ai_classifier is None or not self.ai_classifier.is_configured():
            logger.info(f"{message.message_id}: LLM escalation wanted but no provider configured")
            return enhanced

        prompt = build_classification_prompt(
            subject=message.subject,
            sender=message.sender,
            recipient_count=len(message.recipients),
            body=message.body,
            risk_factors=enhanced.risk_factors,
            regulations=await self.compliance.applicable_regulations(employee),
        )

        try:
            assessment = await self.ai_classifier.assess(prompt)
        except AIProviderError as e:
            logger.warning(f"{message.message_id}: LLM escalation failed, keeping pattern result: {e}")
            return enhanced

        merged = scoring.merge_llm(enhanced, assessment)
        if assessment.parsed:
            self.cache.put(signature, merged)
        logger.info(f"{message.message_id}: LLM-enhanced (security {merged.risk_score})")
        return merged

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.to_dict()


# Global instance
_classifier: Optional[TieredClassifier] = None


def init_classifier(**kwargs) -> TieredClassifier:
    """Initialize the global classifier."""
    global _classifier
    _classifier = TieredClassifier(**kwargs)
    return _classifier


def get_classifier() -> TieredClassifier:
    """Get the global classifier, creating a default one on first use."""
    global _classifier
    if _classifier is None:
        _classifier = TieredClassifier()
    return _classifier
