"""Unit tests for identity.py: anonymous sign-in."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from trade_ledger.db.models import UserORM
from trade_ledger.errors import StoreUnavailable
from trade_ledger.identity import AnonymousIdentity


@pytest.fixture
def mock_session():
    session = MagicMock()
    session.commit = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def session_factory(mock_session):
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=mock_session)
    ctx.__aexit__ = AsyncMock(return_value=False)
    factory = MagicMock(return_value=ctx)
    return factory


async def test_configured_user_skips_sign_in(session_factory):
    identity = AnonymousIdentity(session_factory, user_id="user-42")
    assert await identity.current_user_id() == "user-42"
    session_factory.assert_not_called()


async def test_anonymous_user_created_once(session_factory, mock_session):
    identity = AnonymousIdentity(session_factory)

    first = await identity.current_user_id()
    second = await identity.current_user_id()

    assert first == second
    mock_session.add.assert_called_once()
    user = mock_session.add.call_args.args[0]
    assert isinstance(user, UserORM)
    assert user.id == first
    assert user.email == f"anonymous-{first}@example.com"
    mock_session.commit.assert_awaited_once()


async def test_concurrent_callers_share_one_user(session_factory, mock_session):
    identity = AnonymousIdentity(session_factory)
    ids = await asyncio.gather(*(identity.current_user_id() for _ in range(5)))
    assert len(set(ids)) == 1
    mock_session.add.assert_called_once()


async def test_store_failure(session_factory, mock_session):
    mock_session.commit.side_effect = OperationalError("INSERT", {}, OSError("refused"))
    identity = AnonymousIdentity(session_factory)
    with pytest.raises(StoreUnavailable):
        await identity.current_user_id()
    assert identity.user_id is None
