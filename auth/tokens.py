"""
auth/tokens.py -- JWT and password hashing primitives.

Security design decisions:
  JWT: python-jose with HS512. Tokens are signed with SECRET_KEY and carry
       id, username (the account email), scope and exp. Verification returns
       None on any failure -- the dependency layer turns that into a 401.

  Passwords: bcrypt, used directly (no passlib wrapper). The _DUMMY_HASH
       constant lets the verification flow spend the same bcrypt work when an
       account does not exist, so response time does not reveal which emails
       are registered.

  SECRET_KEY: sourced from core.config.get_settings(), which enforces the
       dev/production key policy at startup.

Layer rule: no imports from api/, db/, repository/, or services/. Import from
core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("accountsvc.auth")

_settings = get_settings()

_ALGORITHM = "HS512"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("accountsvc_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run one bcrypt verification whose result is discarded."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(account_id: int, email: str, scope: str, expire_seconds: int = 0) -> tuple[str, datetime]:
    """Encode a signed JWT and return it with its expiry.

    Args:
        account_id:     Numeric account id (claim "id").
        email:          Account email (claim "username").
        scope:          Scope of the role the token was issued for.
        expire_seconds: Token lifetime. 0 (default) uses TOKEN_TIMEOUT_SECONDS.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_timeout_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "id": account_id,
        "username": email,
        "scope": scope,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM), expire


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "id" not in payload or "scope" not in payload:
        return None
    return payload
