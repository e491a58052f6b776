"""Remote trade store: async SQLAlchemy rows + change notifications.

Rows cross this boundary as plain dicts keyed by trades column names;
mapping them to Trade models is the ledger's job.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trade_ledger.db.models import TRADE_COLUMNS, TradeORM
from trade_ledger.errors import StoreUnavailable
from trade_ledger.models.messages import EVENT_DELETE, EVENT_INSERT, EVENT_UPDATE

if TYPE_CHECKING:
    from trade_ledger.notifications import TradeChangeChannel

logger = structlog.get_logger()

STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class TradeStore(Protocol):
    async def query_all(self, owner_id: str) -> list[dict[str, Any]]: ...

    async def fetch(self, trade_id: str, owner_id: str) -> dict[str, Any] | None: ...

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]: ...

    async def update(
        self,
        trade_id: str,
        owner_id: str,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> dict[str, Any] | None: ...

    async def delete(self, trade_id: str, owner_id: str) -> bool: ...


def _orm_to_row(orm: TradeORM) -> dict[str, Any]:
    return {column: getattr(orm, column) for column in TRADE_COLUMNS}


class SqlTradeStore:
    """TradeStore over PostgreSQL. Each call is one transaction.

    Rows are visible only to their owner (user_id). Every committed
    mutation is announced on the change channel, if one is attached.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: TradeChangeChannel | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.channel = channel

    async def query_all(self, owner_id: str) -> list[dict[str, Any]]:
        """All trades of owner_id, newest first."""
        try:
            async with self.session_factory() as session:
                stmt = (
                    select(TradeORM)
                    .where(TradeORM.user_id == owner_id)
                    .order_by(TradeORM.timestamp.desc())
                )
                result = await session.execute(stmt)
                return [_orm_to_row(t) for t in result.scalars().all()]
        except STORE_ERRORS as exc:
            raise self._unavailable("query_all", exc) from exc

    async def fetch(self, trade_id: str, owner_id: str) -> dict[str, Any] | None:
        try:
            async with self.session_factory() as session:
                stmt = select(TradeORM).where(
                    TradeORM.id == trade_id, TradeORM.user_id == owner_id
                )
                result = await session.execute(stmt)
                trade = result.scalar_one_or_none()
                return _orm_to_row(trade) if trade is not None else None
        except STORE_ERRORS as exc:
            raise self._unavailable("fetch", exc, trade_id=trade_id) from exc

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one trade; the database assigns its id. Returns the stored row."""
        try:
            async with self.session_factory() as session:
                orm = TradeORM(**row)
                session.add(orm)
                await session.flush()
                await session.refresh(orm)
                stored = _orm_to_row(orm)
                await session.commit()
        except STORE_ERRORS as exc:
            raise self._unavailable("insert", exc) from exc
        logger.info("trade_inserted", trade_id=stored["id"])
        await self._announce(EVENT_INSERT, stored["id"])
        return stored

    async def update(
        self,
        trade_id: str,
        owner_id: str,
        fields: dict[str, Any],
        expected_status: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply fields in one UPDATE ... RETURNING.

        With expected_status, the row only matches while its status still
        equals it. Returns None when nothing matched.
        """
        stmt = (
            update(TradeORM)
            .where(TradeORM.id == trade_id, TradeORM.user_id == owner_id)
            .values(**fields)
            .returning(TradeORM)
        )
        if expected_status is not None:
            stmt = stmt.where(TradeORM.status == expected_status)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                trade = result.scalar_one_or_none()
                if trade is None:
                    await session.rollback()
                    return None
                stored = _orm_to_row(trade)
                await session.commit()
        except STORE_ERRORS as exc:
            raise self._unavailable("update", exc, trade_id=trade_id) from exc
        logger.info("trade_row_updated", trade_id=trade_id, fields=list(fields))
        await self._announce(EVENT_UPDATE, trade_id)
        return stored

    async def delete(self, trade_id: str, owner_id: str) -> bool:
        """Delete one trade. Returns False when it did not exist."""
        stmt = (
            delete(TradeORM)
            .where(TradeORM.id == trade_id, TradeORM.user_id == owner_id)
            .returning(TradeORM.id)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                deleted_id = result.scalar_one_or_none()
                if deleted_id is None:
                    await session.rollback()
                    return False
                await session.commit()
        except STORE_ERRORS as exc:
            raise self._unavailable("delete", exc, trade_id=trade_id) from exc
        logger.info("trade_row_deleted", trade_id=trade_id)
        await self._announce(EVENT_DELETE, trade_id)
        return True

    async def _announce(self, event: str, trade_id: str) -> None:
        # Mutation is already committed; a failed publish must not report it as failed.
        if self.channel is None:
            return
        try:
            await self.channel.publish(event, trade_id)
        except Exception:
            logger.exception("trade_change_publish_failed", event=event, trade_id=trade_id)

    @staticmethod
    def _unavailable(operation: str, exc: BaseException, **context: Any) -> StoreUnavailable:
        logger.exception("trade_store_error", operation=operation, **context)
        return StoreUnavailable(f"trade store {operation} failed: {exc}")
