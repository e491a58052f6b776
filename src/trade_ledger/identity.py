"""Caller identity: a configured user, or an anonymous one created on demand."""

from __future__ import annotations

import asyncio
import uuid
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trade_ledger.db.models import UserORM
from trade_ledger.db.store import STORE_ERRORS
from trade_ledger.errors import StoreUnavailable

logger = structlog.get_logger()


class IdentityProvider(Protocol):
    async def current_user_id(self) -> str: ...


class AnonymousIdentity:
    """Resolves the caller, signing in anonymously the first time if needed.

    The anonymous user gets a profile row in ``users`` and is reused for the
    rest of the process.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        user_id: str = "",
    ) -> None:
        self.session_factory = session_factory
        self.user_id = user_id or None
        self._lock = asyncio.Lock()

    async def current_user_id(self) -> str:
        if self.user_id is not None:
            return self.user_id
        async with self._lock:
            if self.user_id is None:
                self.user_id = await self._sign_in_anonymously()
        return self.user_id

    async def _sign_in_anonymously(self) -> str:
        user_id = str(uuid.uuid4())
        try:
            async with self.session_factory() as session:
                session.add(UserORM(id=user_id, email=f"anonymous-{user_id}@example.com"))
                await session.commit()
        except STORE_ERRORS as exc:
            logger.exception("anonymous_sign_in_failed")
            raise StoreUnavailable(f"could not create anonymous user: {exc}") from exc
        logger.info("anonymous_user_created", user_id=user_id)
        return user_id
