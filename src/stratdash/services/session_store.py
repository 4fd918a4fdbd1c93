"""Session store: durable record of live refresh tokens.

Learn: Refresh tokens live for 7 days, far too long to trust on
signature alone. Every refresh token we hand out gets a row here, keyed
by the token string itself. A refresh token is honored only when BOTH:
1. its signature and expiry verify (auth.jwt.verify_refresh_token), and
2. find_valid() returns a row for it.

Deleting the row (logout) revokes the token instantly, even though the
JWT would otherwise stay cryptographically valid until it expires.

find_valid() returns None for absent, expired, and never-issued tokens
alike, so callers can't tell those cases apart.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from stratdash.auth.jwt import issue_token_pair, refresh_token_lifetime
from stratdash.db.models import Session


class SessionStore:
    """CRUD over the sessions table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self, account_id: int, refresh_token: str, expires_at: datetime
    ) -> Session:
        """Persist a session. Storage errors propagate to the caller."""
        session = Session(
            account_id=account_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def find_valid(self, refresh_token: str) -> Optional[Session]:
        """The session for this token, if it exists and hasn't expired."""
        q = select(Session).where(
            Session.refresh_token == refresh_token,
            Session.expires_at > datetime.now(timezone.utc),
        )
        result = await self.db.execute(q)
        return result.scalars().first()

    async def delete(
        self, refresh_token: str, account_id: Optional[int] = None
    ) -> None:
        """Revoke a token. Deleting an unknown token is not an error."""
        stmt = delete(Session).where(Session.refresh_token == refresh_token)
        if account_id is not None:
            stmt = stmt.where(Session.account_id == account_id)
        await self.db.execute(stmt)
        await self.db.commit()

    async def list_for_account(self, account_id: int) -> list[Session]:
        """Live sessions for one account, newest first."""
        q = (
            select(Session)
            .where(
                Session.account_id == account_id,
                Session.expires_at > datetime.now(timezone.utc),
            )
            .order_by(Session.created_at.desc(), Session.id.desc())
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def delete_for_account(self, account_id: int) -> int:
        """Revoke every session an account holds. Returns rows deleted."""
        result = await self.db.execute(
            delete(Session).where(Session.account_id == account_id)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def purge_expired(self) -> int:
        """Drop rows whose expiry has passed. Returns rows deleted."""
        result = await self.db.execute(
            delete(Session).where(Session.expires_at <= datetime.now(timezone.utc))
        )
        await self.db.commit()
        return result.rowcount or 0


async def issue_and_persist_refresh(
    db: AsyncSession, account_id: int, role: str
) -> str:
    """Mint a refresh token and record its session. Returns the token.

    Learn: The access token from the pair is thrown away here: callers
    that also need an access token mint one separately.
    """
    pair = issue_token_pair(account_id, role)
    expires_at = datetime.now(timezone.utc) + refresh_token_lifetime()
    await SessionStore(db).create(account_id, pair.refresh_token, expires_at)
    return pair.refresh_token
