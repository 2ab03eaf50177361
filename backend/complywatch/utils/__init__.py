"""
ComplyWatch Utilities Package
=============================

Common utilities, constants, and helper functions used throughout the application.
"""

from complywatch.utils.constants import (
    APP_NAME,
    APP_VERSION,
    RISK_THRESHOLDS,
)

from complywatch.utils.exceptions import (
    ComplyWatchError,
    PolicyEvaluationError,
    ActionExecutionError,
    UnknownActionTypeError,
    InvalidActionConfigError,
)

from complywatch.utils.helpers import (
    utc_now,
    calculate_md5,
    clamp_score,
    clamp_confidence,
    to_number,
    extract_domain_from_email,
    is_external_address,
    get_risk_level,
    split_csv,
)

__all__ = [
    # Constants
    'APP_NAME',
    'APP_VERSION',
    'RISK_THRESHOLDS',

    # Exceptions
    'ComplyWatchError',
    'PolicyEvaluationError',
    'ActionExecutionError',
    'UnknownActionTypeError',
    'InvalidActionConfigError',

    # Helpers
    'utc_now',
    'calculate_md5',
    'clamp_score',
    'clamp_confidence',
    'to_number',
    'extract_domain_from_email',
    'is_external_address',
    'get_risk_level',
    'split_csv',
]
