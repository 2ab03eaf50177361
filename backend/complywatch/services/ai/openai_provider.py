"""
ComplyWatch OpenAI Provider

Integration with OpenAI's chat completions API for message classification.
"""

from typing import Optional, Dict, Any

from .base import (
    BaseAIProvider,
    AIResponse,
    AIConfigurationError,
)


class OpenAIProvider(BaseAIProvider):
    """
    OpenAI chat completions provider.

    Requests JSON-object output so the response parser usually succeeds on
    its first strategy.
    """

    provider_name = "openai"
    default_model = "gpt-4o-mini"

    API_URL = "https://api.openai.com/v1/chat/completions"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ) -> AIResponse:
        if not self.is_configured():
            raise AIConfigurationError("OpenAI API key not configured")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
            "response_format": {"type": "json_object"},
        }

        data = await self._post_json(self.API_URL, self._get_headers(), payload)

        choice = (data.get("choices") or [{}])[0]
        usage = data.get("usage", {})
        return AIResponse(
            content=choice.get("message", {}).get("content") or "",
            model=data.get("model", self.model),
            tokens_used=usage.get("total_tokens", 0),
            finish_reason=choice.get("finish_reason", "unknown"),
        )
