import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from app.core.config import get_settings

ph = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=2)
settings = get_settings()
JWT_SECRET = settings.jwt_secret
JWT_ALGO = settings.jwt_algo
ACCESS_MIN = settings.access_min

TOKEN_BYTES = 32


def generate_raw_token(nbytes: int = TOKEN_BYTES) -> str:
    """Return a URL-safe bearer secret drawn from ``nbytes`` of OS randomness."""
    return secrets.token_urlsafe(nbytes)


def hash_token(raw_token: str) -> str:
    """Lowercase SHA-256 hex digest used to store and look up a raw token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def hash_password(plain: str) -> str:
    return ph.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False


def create_token(sub: str, role: str, tenant_id: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "role": role,
        "tid": tenant_id,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def create_access(sub: str, role: str, tenant_id: str) -> str:
    return create_token(sub, role, tenant_id, timedelta(minutes=ACCESS_MIN))
