"""
ComplyWatch AI Module

External LLM classification service clients.
"""

from .base import (
    BaseAIProvider,
    AIResponse,
    AIProviderError,
    AIConfigurationError,
    AIRateLimitError,
    AITimeoutError,
    AIResponseParseError,
)

from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider

from .analyzer import (
    AIClassifier,
    init_ai_classifier,
    get_ai_classifier,
)

from .prompts import (
    SYSTEM_PROMPT,
    OUTPUT_SCHEMA,
    build_classification_prompt,
)

from .response_parser import (
    LLMAssessment,
    extract_json,
    parse_assessment,
)

__all__ = [
    # Base
    'BaseAIProvider',
    'AIResponse',
    'AIProviderError',
    'AIConfigurationError',
    'AIRateLimitError',
    'AITimeoutError',
    'AIResponseParseError',

    # Providers
    'AnthropicProvider',
    'OpenAIProvider',

    # Classifier
    'AIClassifier',
    'init_ai_classifier',
    'get_ai_classifier',

    # Prompts
    'SYSTEM_PROMPT',
    'OUTPUT_SCHEMA',
    'build_classification_prompt',

    # Parsing
    'LLMAssessment',
    'extract_json',
    'parse_assessment',
]
