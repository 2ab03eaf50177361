"""
ComplyWatch Content Detectors

Message features and the regex predicates shared by the fast rules, the
compliance prescreen and the detailed compliance analysis.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from complywatch.models.message import Message
from complywatch.utils.constants import FREEMAIL_DOMAINS, RISKY_ATTACHMENT_EXTENSIONS
from complywatch.utils.helpers import extract_domain_from_email, is_external_address


# =============================================================================
# PATTERN TABLES
# =============================================================================

PERSONAL_IDENTIFIER_PATTERNS = [
    re.compile(r'\b\d{3}-\d{2}-\d{4}\b'),                              # SSN
    re.compile(r'\b[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}\b', re.I),     # email address
    re.compile(r'\b\d{3}[\s-]?\d{3}[\s-]?\d{4}\b'),                    # phone number
    re.compile(r'\b\d{1,2}/\d{1,2}/\d{4}\b'),                          # date, possibly DOB
]

CARD_NUMBER_PATTERNS = [
    re.compile(r'\b4\d{3}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b'),        # Visa
    re.compile(r'\b5[1-5]\d{2}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b'),   # MasterCard
    re.compile(r'\b3[47]\d{2}[\s-]?\d{6}[\s-]?\d{5}\b'),               # American Express
    re.compile(r'\b(?:\d{4}[\s-]?){3}\d{4}\b'),                        # any 16-digit grouping
]

CARD_KEYWORD_PATTERNS = [
    re.compile(r'\bcvv\b'),
    re.compile(r'\bexpir'),
    re.compile(r'card\s+number'),
    re.compile(r'payment\s+card'),
    re.compile(r'cardholder'),
]

GDPR_PATTERNS = [
    re.compile(r'personal\s+data'),
    re.compile(r'data\s+subject'),
    re.compile(r'privacy\s+policy'),
    re.compile(r'consent'),
    re.compile(r'data\s+processing'),
    re.compile(r'right\s+to\s+be\s+forgotten'),
    re.compile(r'data\s+portability'),
    re.compile(r'lawful\s+basis'),
]

SOX_PATTERNS = [
    re.compile(r'financial\s+report'),
    re.compile(r'audit\s+trail'),
    re.compile(r'internal\s+control'),
    re.compile(r'financial\s+statement'),
    re.compile(r'earnings'),
    re.compile(r'revenue\s+recognition'),
    re.compile(r'sec\s+filing'),
    re.compile(r'quarterly\s+results'),
]

MEDICAL_PATTERNS = [
    re.compile(r'medical\s+record'),
    re.compile(r'patient\s+data'),
    re.compile(r'health\s+information'),
    re.compile(r'diagnosis'),
    re.compile(r'treatment'),
    re.compile(r'prescription'),
    re.compile(r'hipaa'),
    re.compile(r'icd-?10'),
    re.compile(r'cpt\s*code'),
    re.compile(r'\bssn\b'),
    re.compile(r'social\s+security'),
    re.compile(r'date\s+of\s+birth'),
    re.compile(r'\bdob\b'),
]

BOOKING_TEMPLATE_PATTERNS = [
    re.compile(r'powered\s+by\s+microsoft\s+bookings'),
    re.compile(r'bookingsdatetime\.png'),
    re.compile(r'via\s+microsoft\s+teams'),
    re.compile(r'join\s+your\s+appointment'),
]

APPOINTMENT_KEYWORD = re.compile(r'(appointment|booking|consult|hour\s+meeting|follow[-\s]?up)')
DATE_WORD = re.compile(
    r'\b(january|february|march|april|may|june|july|august|september|october|'
    r'november|december|mon|tue|wed|thu|fri|sat|sun)\b'
)
TIME_BLOCK = re.compile(r'\b\d{1,2}:\d{2}\s?(am|pm)\b')
# Read against the unmodified text; the rest run on lowercased content.
PERSON_NAME = re.compile(r'\b[A-Z][a-z]{2,}\b')

SENSITIVE_DATA_PATTERNS = [
    re.compile(r'confidential'),
    re.compile(r'proprietary'),
    re.compile(r'internal\s+only'),
    re.compile(r'restricted'),
    re.compile(r'password'),
    re.compile(r'api\s+key'),
    re.compile(r'secret'),
    re.compile(r'token'),
]

FINANCE_DEPARTMENTS = {"finance", "accounting"}


def _any(patterns: Iterable[re.Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# =============================================================================
# MESSAGE FEATURES
# =============================================================================

@dataclass
class MessageFeatures:
    """Values derived once per message and read by every detector."""
    content: str
    raw_content: str
    recipient_count: int
    external_recipients: List[str]
    attachment_count: int
    risky_attachments: List[str]
    sent_at: Optional[datetime]

    @property
    def has_external_recipients(self) -> bool:
        return bool(self.external_recipients)

    @property
    def has_attachments(self) -> bool:
        return self.attachment_count > 0

    @classmethod
    def from_message(cls, message: Message, internal_domains: Iterable[str]) -> "MessageFeatures":
        internal = list(internal_domains)
        external = [
            r for r in message.recipients
            if is_external_address(r, internal) or extract_domain_from_email(r) in FREEMAIL_DOMAINS
        ]
        risky = [
            a.filename for a in message.attachments
            if a.extension in RISKY_ATTACHMENT_EXTENSIONS
        ]
        raw = message.content
        return cls(
            content=raw.lower(),
            raw_content=raw,
            recipient_count=len(message.recipients),
            external_recipients=external,
            attachment_count=len(message.attachments),
            risky_attachments=risky,
            sent_at=message.sent_at,
        )


# =============================================================================
# PREDICATES
# =============================================================================

def has_personal_identifiers(content: str) -> bool:
    return _any(PERSONAL_IDENTIFIER_PATTERNS, content)


def has_card_number(content: str) -> bool:
    return _any(CARD_NUMBER_PATTERNS, content)


def has_card_keywords(content: str) -> bool:
    return _any(CARD_KEYWORD_PATTERNS, content)


def has_gdpr_risk(features: MessageFeatures) -> bool:
    """GDPR keywords together with personal identifiers or an external recipient."""
    if not _any(GDPR_PATTERNS, features.content):
        return False
    return has_personal_identifiers(features.content) or features.has_external_recipients


def has_pci_risk(features: MessageFeatures) -> bool:
    """A card number, or card keywords leaving the organisation."""
    if has_card_number(features.content):
        return True
    return has_card_keywords(features.content) and features.has_external_recipients


def has_sox_risk(features: MessageFeatures, department: Optional[str]) -> bool:
    """Financial reporting terms sent externally by finance staff."""
    if (department or "").strip().lower() not in FINANCE_DEPARTMENTS:
        return False
    return _any(SOX_PATTERNS, features.content) and features.has_external_recipients


def has_medical_terms(content: str) -> bool:
    return _any(MEDICAL_PATTERNS, content)


def has_appointment_context(features: MessageFeatures) -> bool:
    """Appointment keyword, date word, clock time and a capitalised name."""
    content = features.content
    return bool(
        APPOINTMENT_KEYWORD.search(content)
        and DATE_WORD.search(content)
        and TIME_BLOCK.search(content)
        and PERSON_NAME.search(features.raw_content)
    )


def has_hipaa_risk(features: MessageFeatures) -> bool:
    """
    Medical terms, or an appointment context that is not a generic booking
    invite.
    """
    medical = has_medical_terms(features.content)
    if medical:
        return True
    if _any(BOOKING_TEMPLATE_PATTERNS, features.content):
        return False
    return has_appointment_context(features)


def has_sensitive_data(content: str) -> bool:
    return _any(SENSITIVE_DATA_PATTERNS, content) or has_personal_identifiers(content)
