"""
Small utilities:
- PII redaction for log lines (emails are the contact key, so they show up everywhere)
- Email normalization used for single-flight keys and search result matching
"""

import re

from crmsync.config import settings


EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def mask_email(email: str) -> str:
    """'jane.doe@example.com' -> 'j***@example.com'. Non-emails pass through untouched."""
    if not email or "@" not in email:
        return email
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def maybe_redact_pii(text: str) -> str:
    if not text or not settings.PII_REDACTION_ENABLED:
        return text
    return EMAIL_RE.sub(lambda m: mask_email(m.group(0)), text)
