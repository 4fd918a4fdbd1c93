"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), used for API calls
- Refresh token: long-lived (7 days), exchanged for new access tokens

The two token types are signed with DIFFERENT secrets, so leaking one
secret can't be used to forge the other kind of token. Both carry the
account id (as `sub`) and the account's role.

Expiry and invalidity raise different exceptions: an expired access
token tells the client to refresh, an invalid one means log in again.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from stratdash.config import settings

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenExpiredError(TokenError):
    """The token's signature is fine but its lifetime is over."""


class TokenInvalidError(TokenError):
    """Bad signature, wrong token type, or malformed token."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity carried by a token."""

    account_id: int
    role: str
    token_type: str
    expires_at: datetime


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.access_token_expire_minutes)


def refresh_token_lifetime() -> timedelta:
    return timedelta(days=settings.refresh_token_expire_days)


def _encode(
    account_id: int,
    role: str,
    token_type: str,
    secret: str,
    lifetime: timedelta,
    issued_at: Optional[datetime] = None,
) -> str:
    # Claims carry whole seconds; dropping the fraction here keeps exp
    # exactly one lifetime after iat
    now = (issued_at or datetime.now(timezone.utc)).replace(microsecond=0)
    payload = {
        "sub": str(account_id),
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        # Unique per token so two logins in the same second differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    account_id: int, role: str, issued_at: Optional[datetime] = None
) -> str:
    """Create a JWT access token."""
    return _encode(
        account_id,
        role,
        ACCESS,
        settings.jwt_access_secret,
        access_token_lifetime(),
        issued_at,
    )


def create_refresh_token(
    account_id: int, role: str, issued_at: Optional[datetime] = None
) -> str:
    """Create a JWT refresh token."""
    return _encode(
        account_id,
        role,
        REFRESH,
        settings.jwt_refresh_secret,
        refresh_token_lifetime(),
        issued_at,
    )


def issue_token_pair(
    account_id: int, role: str, issued_at: Optional[datetime] = None
) -> TokenPair:
    """Sign the same identity twice: once per secret, once per lifetime."""
    return TokenPair(
        access_token=create_access_token(account_id, role, issued_at),
        refresh_token=create_refresh_token(account_id, role, issued_at),
    )


def _decode(token: str, secret: str, token_type: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")

    if payload.get("type") != token_type:
        raise TokenInvalidError(f"Expected a {token_type} token")
    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise TokenInvalidError("Invalid token subject")
    role = payload.get("role")
    if not isinstance(role, str):
        raise TokenInvalidError("Token carries no role")

    return TokenClaims(
        account_id=account_id,
        role=role,
        token_type=token_type,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def verify_access_token(token: str) -> TokenClaims:
    """Verify an access token.

    Raises TokenExpiredError or TokenInvalidError on failure.
    """
    return _decode(token, settings.jwt_access_secret, ACCESS)


def verify_refresh_token(token: str) -> TokenClaims:
    """Verify a refresh token's signature and expiry.

    Learn: This alone is NOT enough to honor a refresh token: the
    caller must also find a live session row for it (see SessionStore).
    """
    return _decode(token, settings.jwt_refresh_secret, REFRESH)
