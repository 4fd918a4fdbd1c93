"""Auth service: registration, login, token refresh, logout.

Learn: The service owns the flows; the route handlers only translate
the exceptions raised here into HTTP statuses:

    DuplicateAccountError    → 400
    InvalidCredentialsError  → 401
    InvalidRefreshTokenError → 401
    AccountNotFoundError     → 401
    AdminRequiredError       → 403
    RegistrationClosedError  → 403

Login never says which half of the credentials was wrong. An unknown
email still pays for one password derivation, so the response time
doesn't give away which emails have accounts either.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stratdash.auth.jwt import TokenError, create_access_token, verify_refresh_token
from stratdash.auth.password import hash_password, verify_password
from stratdash.config import settings
from stratdash.db.models import ROLE_ADMIN, ROLES, Account
from stratdash.services.session_store import SessionStore, issue_and_persist_refresh

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


class AuthServiceError(Exception):
    """Base class for auth flow failures."""


class RegistrationClosedError(AuthServiceError):
    pass


class DuplicateAccountError(AuthServiceError):
    pass


class InvalidCredentialsError(AuthServiceError):
    pass


class AdminRequiredError(AuthServiceError):
    pass


class InvalidRefreshTokenError(AuthServiceError):
    pass


class AccountNotFoundError(AuthServiceError):
    pass


@dataclass
class AuthResult:
    """An authenticated account plus a fresh token pair."""
    account: Account
    access_token: str
    refresh_token: str


_dummy_hash: Optional[str] = None


def _timing_dummy_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("timing-equalizer")
    return _dummy_hash


class AuthService:
    """Account lifecycle and token issuance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionStore(db)

    # ─── Accounts ─────────────────────────────────────────

    async def get_account(self, account_id: int) -> Optional[Account]:
        return await self.db.get(Account, account_id)

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.email == email))
        return result.scalars().first()

    async def get_account_by_username(self, username: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(Account.username == username)
        )
        return result.scalars().first()

    async def create_account(
        self, email: str, username: str, password: str, role: str
    ) -> Account:
        """Insert an account with a hashed password.

        Raises DuplicateAccountError if the email or username is taken.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if await self.get_account_by_email(email):
            raise DuplicateAccountError("An account with this email already exists")
        if await self.get_account_by_username(username):
            raise DuplicateAccountError(
                "An account with this username already exists"
            )

        account = Account(
            email=email,
            username=username,
            password_hash=hash_password(password),
            role=role,
        )
        self.db.add(account)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            raise DuplicateAccountError(
                "An account with this email or username already exists"
            )
        await self.db.refresh(account)
        return account

    # ─── Flows ────────────────────────────────────────────

    async def _issue(self, account: Account) -> AuthResult:
        access_token = create_access_token(account.id, account.role)
        refresh_token = await issue_and_persist_refresh(
            self.db, account.id, account.role
        )
        return AuthResult(
            account=account,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    async def register(self, email: str, username: str, password: str) -> AuthResult:
        """Bootstrap an operator. Self-registered accounts are always admins."""
        if not settings.registration_open:
            raise RegistrationClosedError("Registration is closed")

        account = await self.create_account(email, username, password, ROLE_ADMIN)
        logger.info("auth.registered", account_id=account.id)
        return await self._issue(account)

    async def login(self, email: str, password: str) -> AuthResult:
        """Exchange email + password for a token pair. Admins only."""
        account = await self.get_account_by_email(email)
        if account is None:
            verify_password(password, _timing_dummy_hash())
            logger.info("auth.login_failed", reason="credentials")
            raise InvalidCredentialsError(INVALID_CREDENTIALS)
        if not verify_password(password, account.password_hash):
            logger.info("auth.login_failed", reason="credentials")
            raise InvalidCredentialsError(INVALID_CREDENTIALS)
        if account.role != ROLE_ADMIN:
            logger.info("auth.login_failed", reason="role", account_id=account.id)
            raise AdminRequiredError("Admin access required")

        logger.info("auth.login_succeeded", account_id=account.id)
        return await self._issue(account)

    async def refresh(self, refresh_token: str) -> str:
        """Exchange a live refresh token for a new access token.

        Learn: The store lookup AND the signature check are both
        required. The refresh token itself is not rotated.
        """
        session = await self.sessions.find_valid(refresh_token)
        if session is None:
            raise InvalidRefreshTokenError("Invalid refresh token")

        try:
            claims = verify_refresh_token(refresh_token)
        except TokenError:
            raise InvalidRefreshTokenError("Invalid refresh token")
        if claims.account_id != session.account_id:
            raise InvalidRefreshTokenError("Invalid refresh token")

        account = await self.get_account(claims.account_id)
        if account is None:
            raise AccountNotFoundError("User not found")

        logger.info("auth.refreshed", account_id=account.id)
        return create_access_token(account.id, account.role)

    async def logout(self, account: Account, refresh_token: Optional[str]) -> None:
        """Revoke one of the caller's refresh tokens (no-op if unknown)."""
        if refresh_token:
            await self.sessions.delete(refresh_token, account_id=account.id)
        logger.info("auth.logged_out", account_id=account.id)

    async def logout_everywhere(self, account: Account) -> int:
        revoked = await self.sessions.delete_for_account(account.id)
        logger.info("auth.logged_out_everywhere", account_id=account.id, revoked=revoked)
        return revoked
