"""Signed OAuth ``state`` blobs: base64 JSON carrying an HMAC signature."""
import base64
import hashlib
import hmac
import json
import secrets
import string
import time

from pos_terminals import config

NONCE_ALPHABET = string.ascii_lowercase + string.digits
NONCE_LENGTH = 8


class InvalidState(ValueError):
    pass


class ExpiredState(InvalidState):
    pass


def _sign(payload: dict) -> str:
    message = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
    key = (config.OAUTH_STATE_SECRET or "").encode()
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def make_nonce(length: int = NONCE_LENGTH) -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def encode_state(user_id: str, now_ms: int = None) -> str:
    payload = {
        "userId": user_id,
        "timestamp": now_ms if now_ms is not None else int(time.time() * 1000),
        "nonce": make_nonce(),
    }
    payload["signature"] = _sign(payload)
    return base64.b64encode(json.dumps(payload).encode()).decode()


def decode_state(state: str, max_age_seconds: int = None, now_ms: int = None) -> dict:
    """Verify and decode a state blob, raising InvalidState or ExpiredState."""
    try:
        payload = json.loads(base64.b64decode(state, validate=True))
    except (ValueError, TypeError):
        raise InvalidState("state is not base64-encoded JSON")
    if not isinstance(payload, dict):
        raise InvalidState("state is not a JSON object")

    signature = payload.pop("signature", None)
    if not isinstance(signature, str) or not hmac.compare_digest(signature, _sign(payload)):
        raise InvalidState("state signature mismatch")

    timestamp = payload.get("timestamp")
    if not isinstance(timestamp, int) or not payload.get("userId"):
        raise InvalidState("state is missing userId or timestamp")

    if max_age_seconds is None:
        max_age_seconds = config.OAUTH_STATE_MAX_AGE_SECONDS
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    if now_ms - timestamp > max_age_seconds * 1000:
        raise ExpiredState("state expired")

    return payload
