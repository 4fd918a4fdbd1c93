"""Session store tests: the revocation half of refresh-token validity."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select

from stratdash.auth.jwt import verify_refresh_token
from stratdash.auth.password import hash_password
from stratdash.db.models import ROLE_ADMIN, Account, Session
from stratdash.services.session_store import SessionStore, issue_and_persist_refresh


def _in(**kwargs):
    return datetime.now(timezone.utc) + timedelta(**kwargs)


@pytest_asyncio.fixture()
async def account(db_session):
    tag = uuid.uuid4().hex[:8]
    acct = Account(
        email=f"store-{tag}@example.com",
        username=f"store-{tag}",
        password_hash=hash_password("secret123"),
        role=ROLE_ADMIN,
    )
    db_session.add(acct)
    await db_session.commit()
    await db_session.refresh(acct)
    return acct


@pytest.fixture()
def store(db_session):
    return SessionStore(db_session)


@pytest.mark.asyncio
async def test_find_valid_after_create(store, account):
    created = await store.create(account.id, "tok-1", _in(days=7))
    found = await store.find_valid("tok-1")
    assert found is not None
    assert found.id == created.id
    assert found.account_id == account.id


@pytest.mark.asyncio
async def test_find_valid_rejects_after_delete(store, account):
    await store.create(account.id, "tok-2", _in(days=7))
    await store.delete("tok-2")
    assert await store.find_valid("tok-2") is None


@pytest.mark.asyncio
async def test_delete_is_idempotent(store, account):
    await store.delete("never-issued")
    await store.create(account.id, "tok-3", _in(days=7))
    await store.delete("tok-3")
    await store.delete("tok-3")
    assert await store.find_valid("tok-3") is None


@pytest.mark.asyncio
async def test_expired_session_looks_like_missing(store, account):
    await store.create(account.id, "tok-old", _in(seconds=-1))
    assert await store.find_valid("tok-old") is None
    assert await store.find_valid("tok-unknown") is None


@pytest.mark.asyncio
async def test_scoped_delete_leaves_other_accounts_alone(store, account):
    await store.create(account.id, "tok-4", _in(days=7))
    await store.delete("tok-4", account_id=account.id + 1000)
    assert await store.find_valid("tok-4") is not None
    await store.delete("tok-4", account_id=account.id)
    assert await store.find_valid("tok-4") is None


@pytest.mark.asyncio
async def test_list_and_delete_for_account(store, account):
    await store.create(account.id, "tok-a", _in(days=7))
    await store.create(account.id, "tok-b", _in(days=7))
    await store.create(account.id, "tok-expired", _in(seconds=-5))

    live = await store.list_for_account(account.id)
    assert {s.refresh_token for s in live} == {"tok-a", "tok-b"}

    assert await store.delete_for_account(account.id) == 3
    assert await store.list_for_account(account.id) == []


@pytest.mark.asyncio
async def test_purge_expired(store, account, db_session):
    await store.create(account.id, "tok-live", _in(days=1))
    await store.create(account.id, "tok-dead-1", _in(seconds=-5))
    await store.create(account.id, "tok-dead-2", _in(days=-2))

    assert await store.purge_expired() == 2

    result = await db_session.execute(select(Session.refresh_token))
    assert result.scalars().all() == ["tok-live"]


@pytest.mark.asyncio
async def test_issue_and_persist_refresh(db_session, account):
    token = await issue_and_persist_refresh(db_session, account.id, account.role)

    claims = verify_refresh_token(token)
    assert claims.account_id == account.id
    assert claims.role == ROLE_ADMIN

    session = await SessionStore(db_session).find_valid(token)
    assert session is not None
    assert session.account_id == account.id
