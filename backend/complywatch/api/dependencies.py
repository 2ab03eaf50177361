"""
ComplyWatch API Dependencies

Service wiring and FastAPI dependency providers.
"""

import logging
from typing import Optional

from complywatch.config import Settings, get_settings
from complywatch.database import get_session_factory
from complywatch.services.ai import init_ai_classifier
from complywatch.services.classification import (
    CategoryStore,
    DatabaseComplianceProfileProvider,
    SignatureCache,
    TieredClassifier,
    get_classifier,
    init_classifier,
)
from complywatch.services.ingestion import MessageIngestionService
from complywatch.services.policy import (
    DatabaseRemediationBackend,
    PolicyActionExecutor,
    PolicyEvaluationEngine,
    WebhookAlertNotifier,
)

logger = logging.getLogger(__name__)

_policy_engine: Optional[PolicyEvaluationEngine] = None
_ingestion_service: Optional[MessageIngestionService] = None
_executor: Optional[PolicyActionExecutor] = None


def init_services(settings: Settings, session_factory=None) -> None:
    """Build the classifier, policy engine, ingestion service and executor."""
    global _policy_engine, _ingestion_service, _executor
    session_factory = session_factory or get_session_factory()

    ai_classifier = None
    if settings.ai_enabled:
        ai_classifier = init_ai_classifier(
            anthropic_api_key=settings.anthropic_api_key,
            openai_api_key=settings.openai_api_key,
            preferred_provider=settings.ai_provider,
            timeout=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )
        if ai_classifier.is_configured():
            logger.info(f"LLM escalation providers: {ai_classifier.get_configured_providers()}")
        else:
            logger.warning("AI enabled but no provider key configured, LLM stage disabled")

    classifier = init_classifier(
        internal_domains=settings.internal_domains,
        category_store=CategoryStore(session_factory, ttl_seconds=settings.category_cache_ttl_seconds),
        profile_provider=DatabaseComplianceProfileProvider(
            session_factory, ttl_seconds=settings.compliance_cache_ttl_seconds
        ),
        cache=SignatureCache(
            ttl_hours=settings.signature_cache_ttl_hours,
            max_entries=settings.signature_cache_max_entries,
        ),
        ai_classifier=ai_classifier,
        business_hours_start=settings.business_hours_start,
        business_hours_end=settings.business_hours_end,
    )

    _policy_engine = PolicyEvaluationEngine(
        session_factory,
        business_hours_start=settings.business_hours_start,
        business_hours_end=settings.business_hours_end,
    )
    _ingestion_service = MessageIngestionService(session_factory, classifier, _policy_engine)

    notifier = WebhookAlertNotifier(settings.alert_webhook_url) if settings.alert_webhook_url else None
    _executor = PolicyActionExecutor(
        session_factory,
        DatabaseRemediationBackend(session_factory, notifier),
        poll_interval=settings.executor_poll_interval_seconds,
        batch_size=settings.executor_batch_size,
    )


def get_tiered_classifier() -> TieredClassifier:
    return get_classifier()


def get_policy_engine() -> PolicyEvaluationEngine:
    global _policy_engine
    if _policy_engine is None:
        _policy_engine = PolicyEvaluationEngine(get_session_factory())
    return _policy_engine


def get_ingestion_service() -> MessageIngestionService:
    global _ingestion_service
    if _ingestion_service is None:
        _ingestion_service = MessageIngestionService(get_session_factory(), get_classifier(), get_policy_engine())
    return _ingestion_service


def get_executor() -> Optional[PolicyActionExecutor]:
    """The background executor, or None before startup."""
    return _executor


__all__ = [
    'get_settings',
    'init_services',
    'get_tiered_classifier',
    'get_policy_engine',
    'get_ingestion_service',
    'get_executor',
]
