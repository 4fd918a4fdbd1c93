"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers (or in
include_router(dependencies=...)) to gate access. Per request:

    no "Authorization: Bearer ..." header  → 401 "No token provided"
    token expired                          → 401 "Token expired"
    token invalid / wrong secret / garbage → 401 "Invalid token"
    account deleted since token was issued → 401 "User not found"
    otherwise                              → the Account

"Token expired" is deliberately distinct so the client knows to use
its refresh token instead of sending the operator back to login.
require_admin layers a 403 role check on top.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stratdash.auth.jwt import TokenExpiredError, TokenInvalidError, verify_access_token
from stratdash.db.engine import get_db
from stratdash.db.models import ROLE_ADMIN, Account


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:].strip() or None


async def get_current_account(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """Resolve the bearer access token to an Account (required)."""
    token = _bearer_token(authorization)
    if token is None:
        raise _unauthorized("No token provided")

    try:
        claims = verify_access_token(token)
    except TokenExpiredError:
        raise _unauthorized("Token expired")
    except TokenInvalidError:
        raise _unauthorized("Invalid token")

    account = await db.get(Account, claims.account_id)
    if account is None:
        raise _unauthorized("User not found")

    request.state.account = account
    return account


async def require_admin(
    account: Account = Depends(get_current_account),
) -> Account:
    """Like get_current_account, but 403 unless the account is an admin."""
    if account.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return account
