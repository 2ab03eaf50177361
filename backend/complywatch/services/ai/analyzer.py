"""
ComplyWatch AI Classifier

Coordinates LLM providers and turns their output into assessments.
"""

import logging
from typing import Optional, Dict, List

from .base import BaseAIProvider, AIProviderError, AIConfigurationError
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider
from .prompts import SYSTEM_PROMPT
from .response_parser import LLMAssessment, parse_assessment

logger = logging.getLogger(__name__)


class AIClassifier:
    """
    LLM classification service client.

    Manages providers and falls back to a secondary provider when the
    preferred one fails.
    """

    def __init__(
        self,
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        preferred_provider: str = "openai",
        fallback_enabled: bool = True,
        timeout: int = 30,
        max_retries: int = 2,
    ):
        self.providers: Dict[str, BaseAIProvider] = {}
        self.preferred_provider = preferred_provider
        self.fallback_enabled = fallback_enabled

        if anthropic_api_key:
            self.providers["anthropic"] = AnthropicProvider(
                api_key=anthropic_api_key, timeout=timeout, max_retries=max_retries,
            )
        if openai_api_key:
            self.providers["openai"] = OpenAIProvider(
                api_key=openai_api_key, timeout=timeout, max_retries=max_retries,
            )

        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_providers(cls, *providers: BaseAIProvider, preferred_provider: Optional[str] = None) -> "AIClassifier":
        """Build a classifier around already-constructed providers."""
        instance = cls(preferred_provider=preferred_provider or (providers[0].provider_name if providers else ""))
        for provider in providers:
            instance.providers[provider.provider_name] = provider
        return instance

    def is_configured(self) -> bool:
        """Check if any provider is configured."""
        return any(p.is_configured() for p in self.providers.values())

    def get_configured_providers(self) -> List[str]:
        """Get list of configured provider names."""
        return [name for name, provider in self.providers.items() if provider.is_configured()]

    def get_provider(self, name: Optional[str] = None) -> Optional[BaseAIProvider]:
        """
        Get a provider by name or return preferred provider.

        Args:
            name: Provider name or None for preferred

        Returns:
            Provider instance or None
        """
        if name and name in self.providers:
            return self.providers[name]

        if self.preferred_provider in self.providers:
            provider = self.providers[self.preferred_provider]
            if provider.is_configured():
                return provider

        for provider in self.providers.values():
            if provider.is_configured():
                return provider

        return None

    def _get_fallback_provider(self, primary: BaseAIProvider) -> Optional[BaseAIProvider]:
        for provider in self.providers.values():
            if provider is not primary and provider.is_configured():
                return provider
        return None

    async def assess(self, prompt: str, system_prompt: str = SYSTEM_PROMPT) -> LLMAssessment:
        """
        Send a classification prompt and parse the reply.

        Raises:
            AIConfigurationError: no provider is configured
            AIProviderError: every configured provider failed
        """
        provider = self.get_provider()
        if not provider:
            raise AIConfigurationError("No AI provider configured")

        try:
            response = await provider.generate(prompt=prompt, system_prompt=system_prompt)
        except AIProviderError as e:
            self.logger.error(f"Primary provider {provider.provider_name} failed: {e}")
            fallback = self._get_fallback_provider(provider) if self.fallback_enabled else None
            if not fallback:
                raise
            self.logger.info(f"Falling back to {fallback.provider_name}")
            response = await fallback.generate(prompt=prompt, system_prompt=system_prompt)

        return parse_assessment(response.content)


# Global instance
_ai_classifier: Optional[AIClassifier] = None


def init_ai_classifier(
    anthropic_api_key: Optional[str] = None,
    openai_api_key: Optional[str] = None,
    preferred_provider: str = "openai",
    timeout: int = 30,
    max_retries: int = 2,
) -> AIClassifier:
    """Initialize the global AI classifier."""
    global _ai_classifier
    _ai_classifier = AIClassifier(
        anthropic_api_key=anthropic_api_key,
        openai_api_key=openai_api_key,
        preferred_provider=preferred_provider,
        timeout=timeout,
        max_retries=max_retries,
    )
    return _ai_classifier


def get_ai_classifier() -> Optional[AIClassifier]:
    """Get the global AI classifier, or None before initialization."""
    return _ai_classifier
