"""
ComplyWatch Anthropic Claude Provider

Integration with Anthropic's Messages API for message classification.
"""

from typing import Optional, Dict, Any

from .base import (
    BaseAIProvider,
    AIResponse,
    AIConfigurationError,
)


class AnthropicProvider(BaseAIProvider):
    """Anthropic Claude Messages API provider."""

    provider_name = "anthropic"
    default_model = "claude-3-5-haiku-latest"

    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"

    def _get_headers(self) -> Dict[str, str]:
        """Get API request headers."""
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
        }

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> AIResponse:
        if not self.is_configured():
            raise AIConfigurationError("Anthropic API key not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": "user", "content": prompt}
            ],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(self.API_URL, self._get_headers(), payload)

        content = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        return AIResponse(
            content=content,
            model=data.get("model", self.model),
            tokens_used=usage.get("input_tokens", 0) + usage.get("output_tokens", 0),
            finish_reason=data.get("stop_reason", "unknown"),
        )
