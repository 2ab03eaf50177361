"""
ComplyWatch AI Prompt Templates

Structured prompts for message risk and compliance classification with LLMs.
"""

from typing import List, Optional

from complywatch.utils.constants import LLM_BODY_LIMIT


# System prompt for message classification
SYSTEM_PROMPT = """You are an insider-risk and regulatory compliance analyst. You review workplace messages (email, chat) sent by employees and judge both the security risk and any compliance violations they contain.

You specialize in:
- Data exfiltration and unauthorized sharing of confidential material
- Credential and secret disclosure
- Flight risk signals (resignation, competitor contact)
- Data protection obligations (GDPR, HIPAA)
- Payment card data exposure (PCI DSS)
- Financial reporting controls (SOX)

Always respond with valid JSON matching the requested schema. Do not add commentary outside the JSON object."""


# Output schema for classification
OUTPUT_SCHEMA = """{
  "risk_score": 0,
  "confidence": 0.0,
  "reasoning": "One or two sentences explaining the score",
  "detected_patterns": [
    {"category": "data_exfiltration", "severity": "High", "matches": ["export customer database"]}
  ],
  "violations": [
    {"type": "GDPR", "category": "data_protection", "severity": "High", "description": "Personal data sent externally"}
  ],
  "recommendations": ["Short actionable recommendation"]
}"""


def build_classification_prompt(
    subject: str,
    sender: str,
    recipient_count: int,
    body: str,
    risk_factors: Optional[List[str]] = None,
    regulations: Optional[List[str]] = None,
) -> str:
    """
    Build the user prompt for a single message.

    Args:
        subject: Message subject
        sender: Sender address
        recipient_count: Number of recipients
        body: Body text; truncated before it is sent
        risk_factors: Factors raised by earlier stages
        regulations: Regulation codes applicable to the employee

    Returns:
        Formatted prompt string
    """
    truncated = body[:LLM_BODY_LIMIT]
    factors_text = "\n".join(f"- {f}" for f in (risk_factors or [])[:10]) or "- none"
    regulations_text = (
        f"Consider compliance with: {', '.join(regulations)}" if regulations else ""
    )

    return f"""Analyze this message for both security risks AND compliance violations.
{regulations_text}

## MESSAGE
Subject: {subject or '(no subject)'}
From: {sender or 'unknown'}
Recipients: {recipient_count}

Body:
{truncated}

## FINDINGS FROM EARLIER STAGES
{factors_text}

Focus on:
- Data protection violations (GDPR, HIPAA)
- Financial reporting issues (SOX)
- Payment data exposure (PCI DSS)
- Internal policy violations
- External data sharing without proper controls

Respond with JSON in exactly this format:
{OUTPUT_SCHEMA}

risk_score is an integer 0-100, confidence a number between 0 and 1."""
