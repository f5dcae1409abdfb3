"""Webhook signature checks for Salla deliveries.

Salla signs the exact request body with HMAC-SHA256 and sends the hex digest
either in the signature header (optionally as ``sha256=<hex>``) or, on some
installs, as ``Authorization: Bearer <hex>``.
"""

from __future__ import annotations

import hashlib
import hmac
import re

_HEX64 = re.compile(r"^[a-fA-F0-9]{64}$")
_SCHEME_PREFIXES = ("bearer ", "sha256=")


def _strip_prefixes(value: str) -> str:
    text = value.strip()
    for prefix in _SCHEME_PREFIXES:
        if text.lower().startswith(prefix):
            text = text[len(prefix):].strip()
    return text


def extract_signature(signature_header: str | None, authorization_header: str | None) -> str:
    """Pick the signature value from the dedicated header or the Authorization fallback.

    The fallback is only trusted when it looks like a SHA-256 hex digest, so an
    unrelated bearer credential is never mistaken for a signature.
    """
    if signature_header and signature_header.strip():
        return _strip_prefixes(signature_header)
    if not authorization_header:
        return ""
    candidate = _strip_prefixes(authorization_header)
    if not _HEX64.match(candidate):
        return ""
    return candidate


def verify(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    if not raw_body or not signature or not secret:
        return False
    candidate = _strip_prefixes(signature).lower()
    if not _HEX64.match(candidate):
        return False
    try:
        provided = bytes.fromhex(candidate)
    except ValueError:
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(expected, provided)


def sign(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
