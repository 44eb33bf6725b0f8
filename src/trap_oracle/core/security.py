"""Shared-secret request signatures for the ingestion endpoints."""
from __future__ import annotations

import hashlib
import hmac
import secrets

SIGNATURE_HEADER = "X-HMAC-Signature"
SIGNATURE_SCHEME = "sha256"


def decode_hmac_key(key_hex: str) -> bytes:
    """Decode the hex-encoded shared secret used to sign request bodies."""
    try:
        key = bytes.fromhex(key_hex)
    except ValueError as err:
        raise ValueError(f"Invalid hex encoding for HMAC key: {err}") from err
    if not key:
        raise ValueError("HMAC key must not be empty")
    return key


def sign_body(key: bytes, body: bytes) -> str:
    """Return the signature header value for a raw request body."""
    digest = hmac.new(key, body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_SCHEME}={digest}"


def verify_body_signature(key: bytes, body: bytes, signature_header: str | None) -> bool:
    """Check a ``sha256=<hex>`` signature header against the raw body.

    Args:
        key: Shared HMAC key.
        body: Exact bytes received on the wire.
        signature_header: Value of the signature header, if any.

    Returns:
        True if the header carries a valid signature for ``body``; False otherwise.
    """
    if not signature_header or not body:
        return False
    scheme, _, supplied = signature_header.partition("=")
    if scheme != SIGNATURE_SCHEME or not supplied:
        return False
    expected = hmac.new(key, body, hashlib.sha256).hexdigest()
    return constant_time_equals(expected, supplied.lower())


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two strings without leaking the position of the first mismatch."""
    left_bytes = left.encode()
    right_bytes = right.encode()
    if len(left_bytes) != len(right_bytes):
        return False
    return secrets.compare_digest(left_bytes, right_bytes)
