"""Heuristic newsletter/junk classification for inbound documents.

Scores positive newsletter signals against promotional, transactional, and
spam signals. Transactional mail is always junk regardless of other
signals.
"""

import re
from dataclasses import dataclass
from enum import Enum

from bytefeed.ingest.text import sender_domain


class EmailCategory(str, Enum):
    """Coarse category assigned by the classifier."""

    NEWSLETTER = "newsletter"
    PROMOTIONAL = "promotional"
    TRANSACTIONAL = "transactional"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class EmailClassification:
    """Result of classifying a document.

    Attributes:
        is_newsletter: Net score is positive.
        is_junk: Net score is negative, or the mail is transactional.
        confidence: Confidence in [0, 1].
        reason: Comma-separated signals that fired.
        category: Coarse category.
    """

    is_newsletter: bool
    is_junk: bool
    confidence: float
    reason: str
    category: EmailCategory


PROMOTIONAL_SUBJECT_PATTERNS = [
    re.compile(
        r"\b(sale|discount|off|deal|offer|promo|coupon|free|limited time"
        r"|act now|urgent|last chance)\b",
        re.IGNORECASE,
    ),
    re.compile(r"(\d+%\s*off|save\s*\$\d+|buy\s*\d+\s*get|flash\s*sale)", re.IGNORECASE),
    re.compile(
        r"\b(order\s*confirm|shipping\s*confirm|delivery|track\s*your|your\s*order)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(no\s*longer|opt\s*out|manage\s*preferences)\b", re.IGNORECASE),
    re.compile(
        r"\b(verify\s*your|confirm\s*your\s*email|activate\s*your|reset\s*password)\b",
        re.IGNORECASE,
    ),
]

PROMOTIONAL_DOMAINS = (
    "amazonses.com",
    "sendgrid.net",
    "mailchimp.com",
    "constantcontact.com",
    "campaign-archive.com",
    "mailgun.org",
    "postmarkapp.com",
    "shopify.com",
    "squarespace.com",
    "wix.com",
)

TRANSACTIONAL_PATTERNS = [
    re.compile(r"\b(receipt|invoice|order\s*#|transaction|payment|refund)\b", re.IGNORECASE),
    re.compile(
        r"\b(verify\s*account|confirm\s*email|thanks\s*for\s*signing|password\s*reset)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(tracking\s*number|shipped|delivery\s*update|out\s*for\s*delivery)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(subscription\s*expir\w*|billing|account\s*update)\b", re.IGNORECASE),
]

SPAM_HTML_PATTERNS = [
    re.compile(r"<img[^>]*width=[\"']?1[\"']?[^>]*height=[\"']?1[\"']?", re.IGNORECASE),
    re.compile(r"click\s*here\s*to\s*unsubscribe", re.IGNORECASE),
    re.compile(r"view\s*this\s*email\s*in\s*your\s*browser", re.IGNORECASE),
    re.compile(r"having\s*trouble\s*viewing", re.IGNORECASE),
    re.compile(r"add\s*us\s*to\s*your\s*address\s*book", re.IGNORECASE),
]

NEWSLETTER_SUBJECT_PATTERNS = [
    re.compile(
        r"\b(weekly|monthly|daily)\s*(digest|roundup|newsletter|update|edition)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(issue\s*#?\d+|edition\s*#?\d+|vol\w*\.?\s*\d+)", re.IGNORECASE),
    re.compile(r"\b(thoughts\s*on|lessons|insights|ideas|reflections)\b", re.IGNORECASE),
    re.compile(r"\b(how\s*to|why|what\s*i\s*learned|the\s*art\s*of)\b", re.IGNORECASE),
]

TRUSTED_NEWSLETTER_DOMAINS = (
    "substack.com",
    "beehiiv.com",
    "convertkit.com",
    "buttondown.email",
    "revue.co",
    "ghost.io",
    "jamesclear.com",
    "fs.blog",
    "sahilbloom.com",
    "3-2-1.club",
)

NEWSLETTER_CONTENT_PATTERNS = [
    re.compile(r"\bin\s*this\s*(issue|edition|newsletter)\b", re.IGNORECASE),
    re.compile(r"\btoday['’]?s\s*(edition|thoughts|links)\b", re.IGNORECASE),
    re.compile(
        r"\bhappy\s*(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
        re.IGNORECASE,
    ),
]

# Only the opening of the body is checked for transactional wording
TRANSACTIONAL_BODY_CHARS = 500
SHORT_CONTENT_CHARS = 200
LONG_CONTENT_CHARS = 1000
VERY_LONG_CONTENT_CHARS = 3000


def _any_match(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def classify_email(
    subject: str,
    sender_email: str,
    text: str,
    html: str = "",
) -> EmailClassification:
    """Classify a document as newsletter, junk, or unknown.

    Args:
        subject: Document subject.
        sender_email: Sender identity.
        text: Plain-text body.
        html: Optional HTML body, checked for tracking pixels and boilerplate.

    Returns:
        Classification with confidence and the signals that fired.
    """
    score = 0
    reasons: list[str] = []
    domain = sender_domain(sender_email)
    sender = sender_email.lower()
    length = len(text)

    trusted = any(d in domain or d in sender for d in TRUSTED_NEWSLETTER_DOMAINS)
    if trusted:
        score += 3
        reasons.append("Trusted newsletter platform")

    if _any_match(NEWSLETTER_SUBJECT_PATTERNS, subject):
        score += 2
        reasons.append("Newsletter-style subject")

    if _any_match(NEWSLETTER_CONTENT_PATTERNS, text):
        score += 2
        reasons.append("Newsletter content patterns")

    if length > LONG_CONTENT_CHARS:
        score += 1
    if length > VERY_LONG_CONTENT_CHARS:
        score += 1

    if _any_match(PROMOTIONAL_SUBJECT_PATTERNS, subject):
        score -= 2
        reasons.append("Promotional subject")

    transactional = _any_match(TRANSACTIONAL_PATTERNS, subject) or _any_match(
        TRANSACTIONAL_PATTERNS, text[:TRANSACTIONAL_BODY_CHARS]
    )
    if transactional:
        return EmailClassification(
            is_newsletter=False,
            is_junk=True,
            confidence=0.85,
            reason="Transactional email (orders, receipts, account notifications)",
            category=EmailCategory.TRANSACTIONAL,
        )

    if html and _any_match(SPAM_HTML_PATTERNS, html):
        score -= 1
        reasons.append("Contains spam patterns")

    if length < SHORT_CONTENT_CHARS:
        score -= 2
        reasons.append("Very short content")

    if not trusted and any(d in domain for d in PROMOTIONAL_DOMAINS):
        score -= 1
        reasons.append("Promotional sender domain")

    if score >= 3:
        category = EmailCategory.NEWSLETTER
        confidence = min(0.95, 0.6 + score * 0.1)
    elif score <= -3:
        category = EmailCategory.PROMOTIONAL
        confidence = min(0.95, 0.6 + abs(score) * 0.1)
    elif score < 0:
        category = EmailCategory.PROMOTIONAL
        confidence = 0.5 + abs(score) * 0.1
    else:
        category = EmailCategory.UNKNOWN
        confidence = 0.5

    return EmailClassification(
        is_newsletter=score > 0,
        is_junk=score < 0,
        confidence=round(confidence, 2),
        reason=", ".join(reasons) if reasons else "No strong indicators",
        category=category,
    )
