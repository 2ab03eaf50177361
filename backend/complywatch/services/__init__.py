"""
ComplyWatch Services Package

Business logic modules:
- classification: tiered message risk and compliance classification
- ai: LLM providers used by the escalation stage
- policy: condition evaluation, remediation actions and the executor
- ingestion: end-to-end message handling
"""

# Services are imported explicitly when needed to avoid circular imports
# Example: from complywatch.services.classification import get_classifier

__all__ = [
    'classification',
    'ai',
    'policy',
    'ingestion',
]
