"""Admin session tokens and password hashing."""

import hashlib
from typing import Any

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from nurushop.core.config import get_settings

BCRYPT_ROUNDS = 10
ADMIN_COOKIE_NAME = "nurushop_admin"


def get_session_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="nurushop-admin-session",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_admin_token(payload: dict[str, Any]) -> str:
    """Sign an admin payload; expiry is enforced on load from the embedded timestamp."""
    return get_session_serializer().dumps(payload)


def load_admin_token(token: str, max_age_seconds: int | None = None) -> dict[str, Any] | None:
    """Return the signed payload, or None when tampered with or older than max_age."""
    if max_age_seconds is None:
        max_age_seconds = get_settings().admin_session_max_age
    serializer = get_session_serializer()
    try:
        payload = serializer.loads(token, max_age=max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
    return payload if isinstance(payload, dict) else None


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    # bcrypt only considers the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False
