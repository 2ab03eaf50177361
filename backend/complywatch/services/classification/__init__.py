"""
ComplyWatch Classification Module

Tiered, cost-aware message risk and compliance classification.
"""

from .categories import (
    CategoryDefinition,
    CategoryStore,
    PatternScorer,
    DEFAULT_CATEGORIES,
    score_category,
)

from .compliance import (
    ComplianceProfile,
    ComplianceProfileProvider,
    StaticComplianceProfileProvider,
    DatabaseComplianceProfileProvider,
    ComplianceAnalyzer,
    DEFAULT_PROFILES,
    prescreen,
)

from .detectors import MessageFeatures
from .fast_rules import FastRuleScorer
from .lookups import TTLLookup
from .pipeline import TieredClassifier, init_classifier, get_classifier
from .scoring import StageOutcome, combine
from .signature_cache import SignatureCache, compute_signature
from .stats import ProcessingStats

__all__ = [
    # Categories
    'CategoryDefinition',
    'CategoryStore',
    'PatternScorer',
    'DEFAULT_CATEGORIES',
    'score_category',

    # Compliance
    'ComplianceProfile',
    'ComplianceProfileProvider',
    'StaticComplianceProfileProvider',
    'DatabaseComplianceProfileProvider',
    'ComplianceAnalyzer',
    'DEFAULT_PROFILES',
    'prescreen',

    # Stages
    'MessageFeatures',
    'FastRuleScorer',
    'TTLLookup',
    'StageOutcome',
    'combine',

    # Pipeline
    'TieredClassifier',
    'init_classifier',
    'get_classifier',
    'SignatureCache',
    'compute_signature',
    'ProcessingStats',
]
