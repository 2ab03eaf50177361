"""
ComplyWatch Constants - Central location for shared constant values.
"""

from typing import Dict, List, Tuple

# APPLICATION INFO
APP_NAME: str = "ComplyWatch"
APP_VERSION: str = "1.0.0"

# RISK SCORING
RISK_THRESHOLDS: Dict[str, Tuple[int, int]] = {
    "Low": (0, 39),
    "Medium": (40, 59),
    "High": (60, 79),
    "Critical": (80, 100),
}

SCORE_MIN: int = 0
SCORE_MAX: int = 100

# CLASSIFICATION THRESHOLDS
RULES_EXIT_CONFIDENCE: float = 0.8
RULES_EXIT_MAX_SECURITY: int = 20
RULES_EXIT_MAX_COMPLIANCE: int = 30
PATTERN_EXIT_CONFIDENCE: float = 0.7
PATTERN_EXIT_MAX_SECURITY: int = 40
PATTERN_EXIT_MAX_COMPLIANCE: int = 50
LLM_ESCALATION_THRESHOLD: int = 45
HIGH_RISK_EMPLOYEE_THRESHOLD: int = 70
CACHE_BLEND_WEIGHT: float = 0.3
FALLBACK_RISK_SCORE: int = 30
LLM_COST_PER_CALL: float = 0.001
LLM_BODY_LIMIT: int = 1500
SIGNATURE_BODY_PREFIX: int = 200
SIGNATURE_LENGTH: int = 16
SIGNATURE_CACHE_MAX_ENTRIES: int = 5000

# DOMAIN LISTS
# Consumer mail providers count as external for every organisation.
FREEMAIL_DOMAINS: List[str] = [
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com",
    "aol.com", "icloud.com", "protonmail.com", "live.com",
]

RISKY_ATTACHMENT_EXTENSIONS: List[str] = [
    ".zip", ".rar", ".exe", ".bat", ".sql", ".csv",
]

HIGH_PRIORITY_KEYWORDS: List[str] = [
    "urgent", "confidential", "resignation", "termination", "competitor",
]

# SEVERITY
SEVERITY_MULTIPLIERS: Dict[str, float] = {
    "Critical": 1.5,
    "High": 1.2,
    "Medium": 1.0,
    "Low": 0.8,
}

# DEPARTMENT -> COMPLIANCE PROFILE FALLBACK
DEPARTMENT_PROFILE_FALLBACK: Dict[str, str] = {
    "finance": "Finance Team",
    "accounting": "Finance Team",
    "it": "IT Administration",
    "engineering": "IT Administration",
}
DEFAULT_PROFILE_NAME: str = "Standard Employee"

# INGESTION
SECURITY_VIOLATION_THRESHOLD: int = 70
SIGNIFICANT_CATEGORY_SCORE: int = 30
EMPLOYEE_RISK_WINDOW_DAYS: int = 30
EMPLOYEE_RISK_HISTORY_LIMIT: int = 50

# Fallback per-violation risk when no score was recorded
SEVERITY_RISK_SCORES: Dict[str, int] = {
    "Critical": 90,
    "High": 70,
    "Medium": 50,
    "Low": 25,
}
