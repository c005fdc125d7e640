"""Password hashing and session token primitives.

Passwords are hashed with bcrypt (per-call random salt embedded in the
digest). Session tokens are stateless HS256 JWTs carrying the record key in
``sub``; they are never stored server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt


class TokenState(str, Enum):
    """States a presented bearer credential moves through."""

    NO_TOKEN = "no-token"
    UNVERIFIED = "token-present-unverified"
    VERIFIED = "verified"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenCheck:
    """Outcome of checking a bearer credential."""

    state: TokenState
    subject: str | None = None


def hash_password(plaintext: str, rounds: int = 12) -> str:
    """Return a bcrypt digest of `plaintext`.

    Raises:
        ValueError: If the encoded password exceeds bcrypt's 72 byte limit.
    """
    secret = plaintext.encode("utf-8")
    if len(secret) > 72:
        raise ValueError("Password must be at most 72 bytes")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(plaintext: str, digest: str) -> bool:
    """Check `plaintext` against a bcrypt digest in constant time.

    Returns:
        True if the password matches; False on mismatch or a malformed digest.
    """
    secret = plaintext.encode("utf-8")
    if len(secret) > 72:
        return False
    try:
        return bcrypt.checkpw(secret, digest.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False


def create_access_token(
    subject: str,
    *,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(minutes=60),
    now: datetime | None = None,
) -> str:
    """Create a signed JWT binding the requester to `subject`."""
    issued_at = now or datetime.now(UTC)
    to_encode: dict[str, object] = {
        "sub": subject,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_delta).timestamp()),
    }
    encoded_jwt: str = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    return encoded_jwt


def check_access_token(
    token: str | None,
    *,
    secret_key: str,
    algorithm: str = "HS256",
) -> TokenCheck:
    """Move a presented credential to its terminal state.

    The signature is verified before the expiry claim is looked at, so
    `EXPIRED` is only reported for tokens that were genuinely issued with the
    current secret.
    """
    if not token:
        return TokenCheck(TokenState.NO_TOKEN)

    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except ExpiredSignatureError:
        return TokenCheck(TokenState.EXPIRED)
    except JWTError:
        return TokenCheck(TokenState.INVALID)

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return TokenCheck(TokenState.INVALID)
    return TokenCheck(TokenState.VERIFIED, subject=subject)
