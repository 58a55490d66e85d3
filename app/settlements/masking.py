"""
Masking helpers for provider traffic in logs.

Provider request and response bodies contain JWE tokens, bank account
numbers and store contact details. Anything destined for a log record goes
through these helpers first.

Usage:
    from settlements.masking import mask_email, mask_sensitive_text

    logger.error("Provider error body", extra={"body": mask_sensitive_text(body)})
    masked = mask_email("owner@store.kr")  # "o***@store.kr"
"""

from __future__ import annotations

import re

# Five base64url segments separated by dots, the compact JWE shape
_JWE_PATTERN = re.compile(r"eyJ[A-Za-z0-9_\-]*(?:\.[A-Za-z0-9_\-]*){4}")
_ACCOUNT_PATTERN = re.compile(r"\b\d{10,}\b")
_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_PATTERN = re.compile(r"\b\d{2,3}-\d{3,4}-\d{4}\b")


def mask_email(email: str) -> str:
    """
    Mask an e-mail address, keeping the first character and the domain.

    Example:
        mask_email("owner@store.kr")  # "o***@store.kr"
    """
    if not email or "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)
    masked_local = local[0] + "***" if len(local) > 1 else "***"
    return f"{masked_local}@{domain}"


def mask_phone(phone: str) -> str:
    """
    Mask a phone number, keeping only the last 4 digits.

    Example:
        mask_phone("010-1234-5678")  # "***-****-5678"
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) < 4:
        return "***"
    return f"***-****-{digits[-4:]}"


def mask_token(token: str) -> str:
    """Reduce a token to its length so it can still be correlated."""
    if not token:
        return ""
    return f"[TOKEN len={len(token)}]"


def mask_sensitive_text(text: str | None) -> str | None:
    """
    Mask JWE tokens, account numbers, e-mails and phone numbers in free text.

    Used on raw provider bodies before they are logged.
    """
    if not text or not text.strip():
        return text

    text = _JWE_PATTERN.sub("[JWE_TOKEN_MASKED]", text)
    text = _ACCOUNT_PATTERN.sub("[ACCOUNT_MASKED]", text)
    text = _EMAIL_PATTERN.sub("[EMAIL_MASKED]", text)
    text = _PHONE_PATTERN.sub("[PHONE_MASKED]", text)
    return text


__all__ = [
    "mask_email",
    "mask_phone",
    "mask_sensitive_text",
    "mask_token",
]
