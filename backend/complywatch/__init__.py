"""
ComplyWatch

Cost-aware insider-risk and compliance monitoring service.
"""

__version__ = "1.0.0"
