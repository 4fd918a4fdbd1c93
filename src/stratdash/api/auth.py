"""Auth API: registration, login, refresh, logout, sessions.

Learn: Routes for operator authentication:
- POST /admin/register → create an admin account → tokens (201)
- POST /admin/login → email/password → tokens (rate limited per IP)
- POST /admin/refresh → refresh token → new access token
- POST /admin/logout → revoke one refresh token
- POST /admin/logout-all → revoke every session of the caller
- GET /admin/sessions → the caller's live sessions
- GET /admin/me → the caller's account
- GET /admin/protected → admin-only probe

The handlers are thin: AuthService does the work and raises domain
errors, which are translated to HTTP statuses here.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stratdash.auth.dependencies import get_current_account, require_admin
from stratdash.db.engine import get_db
from stratdash.db.models import Account
from stratdash.schemas.auth import (
    AccessTokenResponse,
    AccountRead,
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    ProtectedResponse,
    RefreshRequest,
    RegisterRequest,
    RevokedResponse,
    SessionRead,
)
from stratdash.services.auth_service import (
    AccountNotFoundError,
    AdminRequiredError,
    AuthResult,
    AuthService,
    DuplicateAccountError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    RegistrationClosedError,
)
from stratdash.services.session_store import SessionStore

router = APIRouter(prefix="/admin")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=AccountRead.model_validate(result.account),
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create an admin account and sign it in."""
    try:
        result = await svc.register(body.email, body.username, body.password)
    except DuplicateAccountError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RegistrationClosedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _auth_response(result)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with email and password → JWT tokens."""
    try:
        result = await svc.login(body.email, body.password)
    except InvalidCredentialsError as e:
        raise _unauthorized(str(e))
    except AdminRequiredError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _auth_response(result)


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Exchange a live refresh token for a new access token."""
    if not body.refresh_token:
        raise _unauthorized("Refresh token required")
    try:
        access_token = await svc.refresh(body.refresh_token)
    except (InvalidRefreshTokenError, AccountNotFoundError) as e:
        raise _unauthorized(str(e))
    return AccessTokenResponse(access_token=access_token)


# ─── Logout ─────────────────────────────────────────────


@router.post("/logout")
async def logout(
    body: Optional[LogoutRequest] = None,
    account: Account = Depends(get_current_account),
    svc: AuthService = Depends(_svc),
):
    """Revoke the supplied refresh token. Always 200, empty body."""
    await svc.logout(account, body.refresh_token if body else None)
    return Response(status_code=200)


@router.post("/logout-all", response_model=RevokedResponse)
async def logout_all(
    account: Account = Depends(get_current_account),
    svc: AuthService = Depends(_svc),
):
    """Revoke every session the caller holds."""
    revoked = await svc.logout_everywhere(account)
    return RevokedResponse(revoked=revoked)


# ─── Current account ────────────────────────────────────


@router.get("/me", response_model=AccountRead)
async def get_me(account: Account = Depends(get_current_account)):
    """Get the current authenticated account."""
    return account


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's live sessions (without token values)."""
    return await SessionStore(db).list_for_account(account.id)


@router.get("/protected", response_model=ProtectedResponse)
async def protected(account: Account = Depends(require_admin)):
    """Admin-only probe used by the dashboard to check its credentials."""
    return ProtectedResponse(
        message="Admin access granted",
        user=AccountRead.model_validate(account),
    )
