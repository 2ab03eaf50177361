"""
ComplyWatch Ingestion Module
"""

from .processor import (
    IngestionResult,
    MessageIngestionService,
    compute_employee_risk,
    security_severity,
    security_violation_type,
)

__all__ = [
    'IngestionResult',
    'MessageIngestionService',
    'compute_employee_risk',
    'security_severity',
    'security_violation_type',
]
