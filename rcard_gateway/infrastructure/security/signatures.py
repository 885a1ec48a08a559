"""HMAC request signing for the organization payment API"""

import hashlib
import hmac
import json
from typing import Any, Mapping

SIGNATURE_FIELD = "signature"


def canonical_payload(body: Mapping[str, Any]) -> str:
    """Compact, key-sorted JSON of the body without its signature field"""
    unsigned = {k: v for k, v in body.items() if k != SIGNATURE_FIELD}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":"))


def sign_payload(secret: str, body: Mapping[str, Any]) -> str:
    """Hex HMAC-SHA256 of the canonical payload"""
    return hmac.new(secret.encode("utf-8"), canonical_payload(body).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: Mapping[str, Any]) -> bool:
    given = body.get(SIGNATURE_FIELD)
    if not isinstance(given, str) or not secret:
        return False
    return hmac.compare_digest(sign_payload(secret, body), given)


def timestamp_within_drift(timestamp: Any, now_ts: float, max_drift: int) -> bool:
    """True when the unix timestamp is within max_drift seconds of now"""
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False
    return abs(now_ts - ts) <= max_drift
