"""
ComplyWatch Helper Functions

Utility functions used throughout the application.
"""

import hashlib
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from .constants import RISK_THRESHOLDS, SCORE_MAX, SCORE_MIN


# ============================================================================
# Timestamps
# ============================================================================

def utc_now() -> datetime:
    """
    Get current UTC timestamp as a naive datetime.

    SQLite stores datetimes without an offset, so every persisted and
    compared timestamp in the application is naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)



# ============================================================================
# Hashing
# ============================================================================

def calculate_md5(text: str) -> str:
    """Calculate MD5 hex digest of a string."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


# ============================================================================
# Numbers
# ============================================================================

def clamp_score(value: Any) -> int:
    """
    Clamp a value to an integer score in [0, 100].

    Missing, non-numeric and NaN values count as 0.
    """
    if value is None or isinstance(value, bool):
        return SCORE_MIN
    try:
        number = float(value)
    except (TypeError, ValueError):
        return SCORE_MIN
    if math.isnan(number):
        return SCORE_MIN
    if number <= SCORE_MIN:
        return SCORE_MIN
    if number >= SCORE_MAX:
        return SCORE_MAX
    return int(round(number))


def clamp_confidence(value: Any) -> float:
    """Clamp a value to a confidence in [0.0, 1.0]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(1.0, number))


def to_number(value: Any) -> Optional[float]:
    """Coerce a value to float, returning None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


# ============================================================================
# Email Addresses
# ============================================================================

EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')


def extract_domain_from_email(email: str) -> Optional[str]:
    """Extract the lowercased domain part of an email address."""
    if not email or "@" not in email:
        return None
    return email.rsplit("@", 1)[1].strip().strip(">").lower() or None


def is_external_address(email: str, internal_domains: Iterable[str]) -> bool:
    """Return True when the address does not belong to an internal domain."""
    domain = extract_domain_from_email(email)
    if domain is None:
        return False
    internal = {d.lower() for d in internal_domains}
    return not any(domain == d or domain.endswith("." + d) for d in internal)


# ============================================================================
# Risk Level Calculation
# ============================================================================

def get_risk_level(score: int) -> str:
    """
    Get risk level string from numeric score.

    Args:
        score: Risk score 0-100

    Returns:
        Risk level string (Low, Medium, High, Critical)
    """
    score = clamp_score(score)
    for level, (min_score, max_score) in RISK_THRESHOLDS.items():
        if min_score <= score <= max_score:
            return level
    return "Low"


# ============================================================================
# String Utilities
# ============================================================================

def split_csv(value: Any) -> List[str]:
    """Split a comma-separated value into trimmed, lowercased items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip().lower() for item in items if str(item).strip()]
