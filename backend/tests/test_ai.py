"""
ComplyWatch AI Module Tests

Tests for LLM response parsing, prompt building and provider fallback.
"""

import asyncio

import pytest


class TestResponseParser:
    """Tests for the JSON extraction chain."""

    def test_strict_json(self):
        from complywatch.services.ai.response_parser import parse_assessment

        assessment = parse_assessment('{"risk_score": 65, "confidence": 0.7, "reasoning": "ok"}')

        assert assessment.parsed
        assert assessment.risk_score == 65
        assert assessment.confidence == pytest.approx(0.7)

    def test_fenced_block(self):
        from complywatch.services.ai.response_parser import extract_json

        content = 'Here you go:\n```json\n{"risk_score": 40}\n```\nAnything else?'
        assert extract_json(content) == {"risk_score": 40}

    def test_first_balanced_object_ignores_braces_in_strings(self):
        from complywatch.services.ai.response_parser import parse_first_object

        content = 'Result: {"reasoning": "uses {curly} text", "risk_score": 20} trailing }'
        assert parse_first_object(content) == {"reasoning": "uses {curly} text", "risk_score": 20}

    def test_unparseable_gives_empty_default(self):
        """Garbage never raises and scores zero."""
        from complywatch.services.ai.response_parser import parse_assessment

        assessment = parse_assessment("no json here {not valid")

        assert not assessment.parsed
        assert assessment.risk_score == 0
        assert assessment.confidence == 0.0
        assert assessment.patterns == []

    def test_out_of_range_values_are_clamped(self):
        from complywatch.services.ai.response_parser import parse_assessment

        assessment = parse_assessment('{"risk_score": 250, "confidence": 3, "recommendations": "Review"}')

        assert assessment.risk_score == 100
        assert assessment.confidence == 1.0
        assert assessment.recommendations == ["Review"]

    def test_patterns_and_violations(self):
        from complywatch.models.classification import Severity
        from complywatch.services.ai.response_parser import parse_assessment

        assessment = parse_assessment(
            '{"risk_score": 70, "detected_patterns": [{"category": "exfiltration", "severity": "high"}, "odd"],'
            ' "violations": [{"type": "GDPR", "severity": "critical", "description": "PII"}]}'
        )

        assert [p.category for p in assessment.patterns] == ["exfiltration", "odd"]
        assert assessment.patterns[0].severity == Severity.HIGH
        assert assessment.violations[0].severity == Severity.CRITICAL

    def test_non_list_patterns_and_violations_ignored(self):
        """A string or number where a list belongs is dropped, not iterated."""
        from complywatch.services.ai.response_parser import parse_assessment

        assessment = parse_assessment('{"risk_score": 55, "detected_patterns": "abc", "violations": 5}')

        assert assessment.parsed
        assert assessment.risk_score == 55
        assert assessment.patterns == []
        assert assessment.violations == []


class TestPrompt:
    """Tests for prompt construction."""

    def test_body_truncated(self):
        from complywatch.services.ai.prompts import build_classification_prompt

        prompt = build_classification_prompt(
            subject="Subject",
            sender="a@company.com",
            recipient_count=2,
            body="x" * 5000,
            risk_factors=["External recipients detected"],
            regulations=["GDPR"],
        )

        assert "x" * 1500 in prompt
        assert "x" * 1501 not in prompt
        assert "External recipients detected" in prompt


class StubProvider:
    def __init__(self, name, content="{}", error=None):
        self.provider_name = name
        self.content = content
        self.error = error
        self.calls = 0

    def is_configured(self):
        return True

    async def generate(self, prompt, system_prompt=None, temperature=0.1, max_tokens=1000):
        from complywatch.services.ai.base import AIResponse

        self.calls += 1
        if self.error:
            raise self.error
        return AIResponse(content=self.content, model=self.provider_name, tokens_used=0, finish_reason="stop")


class TestAIClassifier:
    """Tests for provider selection and fallback."""

    def test_falls_back_to_secondary_provider(self):
        from complywatch.services.ai.analyzer import AIClassifier
        from complywatch.services.ai.base import AIProviderError

        primary = StubProvider("openai", error=AIProviderError("503"))
        secondary = StubProvider("anthropic", content='{"risk_score": 55}')
        classifier = AIClassifier.from_providers(primary, secondary, preferred_provider="openai")

        assessment = asyncio.run(classifier.assess("prompt"))

        assert assessment.risk_score == 55
        assert primary.calls == 1
        assert secondary.calls == 1

    def test_no_provider_raises_configuration_error(self):
        from complywatch.services.ai.analyzer import AIClassifier
        from complywatch.services.ai.base import AIConfigurationError

        classifier = AIClassifier()
        assert not classifier.is_configured()
        with pytest.raises(AIConfigurationError):
            asyncio.run(classifier.assess("prompt"))

    def test_keys_register_providers(self):
        from complywatch.services.ai.analyzer import AIClassifier

        classifier = AIClassifier(openai_api_key="sk-test", anthropic_api_key="ak-test")
        assert sorted(classifier.get_configured_providers()) == ["anthropic", "openai"]
        assert classifier.get_provider().provider_name == "openai"
