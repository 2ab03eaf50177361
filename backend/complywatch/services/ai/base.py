"""
ComplyWatch AI Provider Base Class

Abstract base class for LLM providers used by the classification pipeline.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass

import aiohttp


@dataclass
class AIResponse:
    """Response from AI provider."""
    content: str
    model: str
    tokens_used: int
    finish_reason: str


class AIProviderError(Exception):
    """Base exception for AI provider errors."""
    pass


class AIConfigurationError(AIProviderError):
    """API key or configuration missing."""
    pass


class AIRateLimitError(AIProviderError):
    """Rate limit exceeded."""
    pass


class AITimeoutError(AIProviderError):
    """Request timed out."""
    pass


class AIResponseParseError(AIProviderError):
    """Failed to parse AI response."""
    pass


class BaseAIProvider(ABC):
    """
    Abstract base class for AI providers.

    Defines the text-in/text-out interface that all AI providers implement.
    """

    provider_name: str = "base"
    default_model: str = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 2,
    ):
        """
        Initialize provider.

        Args:
            api_key: API key for provider
            model: Model to use (defaults to provider default)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
        """
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        self.max_retries = max_retries
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def is_configured(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> AIResponse:
        """
        Generate text from prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system prompt
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum tokens in response

        Returns:
            AIResponse with generated content
        """
        pass

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        POST a JSON payload with retries.

        429 responses and connection errors back off exponentially; 401 is
        fatal. Returns the decoded body of the first 200 response.
        """
        last_error: Optional[AIProviderError] = None
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        for attempt in range(self.max_retries):
            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.post(url, headers=headers, json=payload) as response:
                        data = await response.json(content_type=None)

                        if response.status == 200:
                            return data or {}

                        if response.status == 429:
                            wait_time = 2 ** attempt
                            self.logger.warning(f"Rate limited, waiting {wait_time}s")
                            await asyncio.sleep(wait_time)
                            last_error = AIRateLimitError("Rate limit exceeded")
                            continue

                        if response.status == 401:
                            raise AIConfigurationError("Invalid API key")

                        error = (data or {}).get("error", {})
                        error_msg = error.get("message", str(data)) if isinstance(error, dict) else str(error)
                        raise AIProviderError(f"API error ({response.status}): {error_msg}")

            except asyncio.TimeoutError:
                last_error = AITimeoutError(f"Request timed out after {self.timeout}s")
                continue

            except aiohttp.ClientError as e:
                last_error = AIProviderError(f"Connection error: {e}")
                await asyncio.sleep(2 ** attempt)
                continue

            except ValueError as e:
                raise AIResponseParseError(f"Provider returned a non-JSON body: {e}")

        raise last_error or AIProviderError("Max retries exceeded")
