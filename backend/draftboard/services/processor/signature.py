"""Webhook signature scheme.

Header format: ``t=<unix seconds>,v1=<hex HMAC-SHA256(secret, "<t>.<payload>")>``.
Several ``v1`` entries may be present during secret rotation.
"""

import time

from cryptography import exceptions as crypto_exceptions
from cryptography.hazmat.primitives import hashes, hmac

from draftboard.exceptions import InvalidSignature


def _mac(secret: str, timestamp: int, payload: bytes) -> hmac.HMAC:
    h = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    h.update(f"{timestamp}.".encode("utf-8") + payload)
    return h


def compute_signature(secret: str, timestamp: int, payload: bytes) -> str:
    return _mac(secret, timestamp, payload).finalize().hex()


def build_signature_header(
    secret: str, payload: bytes, timestamp: int | None = None
) -> str:
    """Produce a signature header (used by the sandbox and in tests)."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},v1={compute_signature(secret, ts, payload)}"


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> int:
    """Verify a signature header against the raw request body.

    Returns the signed timestamp. Raises InvalidSignature on a missing or
    malformed header, a timestamp outside the tolerance window, or a digest
    mismatch.
    """
    if not secret:
        raise InvalidSignature("Webhook secret is not configured")
    if not header:
        raise InvalidSignature("Missing signature header")

    timestamp: int | None = None
    candidates: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise InvalidSignature("Malformed signature timestamp")
        elif key == "v1" and value:
            candidates.append(value)

    if timestamp is None or not candidates:
        raise InvalidSignature("Malformed signature header")

    current = time.time() if now is None else now
    if tolerance_seconds > 0 and abs(current - timestamp) > tolerance_seconds:
        raise InvalidSignature("Signature timestamp outside tolerance window")

    for candidate in candidates:
        try:
            expected = bytes.fromhex(candidate)
        except ValueError:
            continue
        try:
            _mac(secret, timestamp, payload).verify(expected)
            return timestamp
        except crypto_exceptions.InvalidSignature:
            continue

    raise InvalidSignature("Signature mismatch")
