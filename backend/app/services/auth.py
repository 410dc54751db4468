"""
Password hashing and bearer tokens.

Tokens are ``<user_id>.<exp>.<signature>`` where the signature is an
HMAC-SHA256 over the first two parts with JWT_SECRET.
"""

import os
import hmac
import uuid
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

JWT_SECRET = os.getenv("JWT_SECRET", "crewhours-dev-secret-change-in-prod")
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "24"))

_PBKDF2_ROUNDS = 100_000


def get_password_hash(password: str) -> str:
    salt = secrets.token_hex(16)
    h = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ROUNDS)
    return f"{salt}${h.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt, h = stored.split("$", 1)
    except (AttributeError, ValueError):
        return False
    expected = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ROUNDS)
    return hmac.compare_digest(expected.hex(), h)


def _sign(payload: str) -> str:
    return hmac.new(JWT_SECRET.encode(), payload.encode(), "sha256").hexdigest()


def create_access_token(user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    expires_delta = expires_delta or timedelta(hours=JWT_EXPIRY_HOURS)
    exp = int((datetime.now(timezone.utc) + expires_delta).timestamp())
    payload = f"{user_id}.{exp}"
    return f"{payload}.{_sign(payload)}"


def decode_access_token(token: str) -> Optional[dict]:
    """Returns {"sub": user_id, "exp": exp} or None for bad/expired tokens."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    user_id_s, exp_s, sig = parts
    if not hmac.compare_digest(sig, _sign(f"{user_id_s}.{exp_s}")):
        return None
    try:
        exp = int(exp_s)
        user_id = uuid.UUID(user_id_s)
    except ValueError:
        return None
    if exp < int(datetime.now(timezone.utc).timestamp()):
        return None
    return {"sub": user_id, "exp": exp}
