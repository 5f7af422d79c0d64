"""
auth/tokens.py -- Password hashing, session JWT encoding, and reset tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the principal id ("sub") and
       an integer expiry ("exp"). Decoding returns None on any failure; the
       issuer turns that into InvalidToken and the Guard into Unauthenticated.

       Expiry is checked here against an explicit `now` rather than by jose.
       jose accepts a token whose exp equals the current second; a session
       must be invalid from its expiry instant onward, and callers need to
       pin the clock in tests.

  Passwords: bcrypt directly (no passlib wrapper). _DUMMY_HASH enables
       timing equalization so a login for an unknown account costs the same
       bcrypt round as a login with a wrong password.

  Reset tokens: secrets.token_hex(20) -- 160 bits of entropy, single use,
       stored verbatim so the reset link can be matched exactly.

The signing key is always passed in. Nothing in this module reads settings.

Layer rule: no imports from api/ or products/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

logger = logging.getLogger("gatekeeper.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


# bcrypt only reads the first 72 bytes of its input, and bcrypt>=5 raises on
# anything longer. Request models reject longer passwords before they get here.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises ValueError if the UTF-8 encoding is longer than MAX_PASSWORD_BYTES.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash is
    treated as a mismatch rather than an error, and so is a password too long
    to have been hashed in the first place.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at import so the first failed login is not measurably faster.
_DUMMY_HASH: str = hash_password("gatekeeper_timing_dummy")


def burn_verification(plain: str) -> None:
    """Run one bcrypt verification against the dummy hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def encode_session_token(principal_id: int, secret_key: str, ttl_seconds: int, now: datetime) -> str:
    """Encode a signed JWT binding principal_id with an expiry of now + ttl."""
    expires = now + timedelta(seconds=ttl_seconds)
    payload = {
        "sub": str(principal_id),
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str, secret_key: str, now: datetime) -> int | None:
    """Verify signature and expiry; return the principal id or None.

    None covers every failure: bad signature, malformed token, missing or
    non-integer claims, and now >= exp. Callers must not try to tell them
    apart.
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None

    exp = payload.get("exp")
    sub = payload.get("sub")
    if not isinstance(exp, int) or sub is None:
        return None
    if int(now.timestamp()) >= exp:
        return None
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a random 40-hex-character single-use reset token."""
    return secrets.token_hex(20)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
