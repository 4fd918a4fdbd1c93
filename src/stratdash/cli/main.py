"""stratdash CLI: operator and session housekeeping.

Usage:
    stratdash create-admin --email a@x.com --username a   # prompts for password
    stratdash revoke-sessions a@x.com                      # log out everywhere
    stratdash purge-sessions                               # drop expired rows
    stratdash serve --reload                               # run the API

Talks to the database directly (STRATDASH_DATABASE_URL), not over HTTP.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import sys
from contextlib import asynccontextmanager

import click

from stratdash import __version__

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


@asynccontextmanager
async def _db():
    """A session on a fresh engine owned by the current event loop."""
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from stratdash.config import settings
    from stratdash.db.engine import build_engine

    engine = build_engine(settings.database_url)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="stratdash")
def main():
    """stratdash: dashboard backend administration."""


@main.command("create-admin")
@click.option("--email", required=True, help="Login email for the new admin")
@click.option("--username", required=True, help="Unique display name")
@click.password_option(help="Password (prompted if omitted)")
def create_admin(email: str, username: str, password: str):
    """Create an admin account without going through the API."""
    from stratdash.db.models import ROLE_ADMIN
    from stratdash.services.auth_service import AuthService, DuplicateAccountError

    async def _impl():
        async with _db() as db:
            return await AuthService(db).create_account(
                email, username, password, ROLE_ADMIN
            )

    try:
        account = _run(_impl())
    except DuplicateAccountError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Created admin #{account.id} ({account.email})", fg="green")


@main.command("revoke-sessions")
@click.argument("email")
def revoke_sessions(email: str):
    """Revoke every refresh token held by the account with EMAIL."""
    from stratdash.services.auth_service import AuthService

    async def _impl():
        async with _db() as db:
            svc = AuthService(db)
            account = await svc.get_account_by_email(email)
            if account is None:
                return None
            return await svc.logout_everywhere(account)

    revoked = _run(_impl())
    if revoked is None:
        click.secho(f"Error: no account with email {email}", fg="red", err=True)
        sys.exit(1)
    click.echo(f"Revoked {revoked} session(s) for {email}")


@main.command("purge-sessions")
def purge_sessions():
    """Delete sessions whose refresh token has expired."""
    from stratdash.services.session_store import SessionStore

    async def _impl():
        async with _db() as db:
            return await SessionStore(db).purge_expired()

    purged = _run(_impl())
    click.echo(f"Purged {purged} expired session(s)")


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API with uvicorn."""
    import uvicorn

    from stratdash.config import settings

    uvicorn.run(
        "stratdash.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
