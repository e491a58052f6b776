"""Entry point: keep performance statistics fresh and log every refresh."""

import asyncio
import signal

import structlog

from trade_ledger.config import Settings
from trade_ledger.db.engine import create_db_engine, create_session_factory
from trade_ledger.db.store import SqlTradeStore
from trade_ledger.identity import AnonymousIdentity
from trade_ledger.ledger import TradeLedger
from trade_ledger.models.statistics import PerformanceStatistics
from trade_ledger.notifications import TradeChangeChannel
from trade_ledger.redis_client import RedisClient
from trade_ledger.view import PerformanceView

logger = structlog.get_logger()


async def log_statistics(trades: list, statistics: PerformanceStatistics) -> None:
    logger.info(
        "performance_statistics",
        open_trades=sum(1 for t in trades if t.is_open),
        closed_trades=statistics.total_trades,
        win_rate=statistics.win_rate,
        total_pnl=str(statistics.total_pnl),
        average_profit=str(statistics.average_profit),
        average_loss=str(statistics.average_loss),
        best_trade=str(statistics.best_trade),
        worst_trade=str(statistics.worst_trade),
        recommendations=statistics.recommendations,
    )


async def main() -> None:
    settings = Settings()

    redis = RedisClient(
        redis_url=settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT
    )
    await redis.connect()

    engine = create_db_engine(settings)
    session_factory = create_session_factory(engine)

    channel = TradeChangeChannel(
        redis,
        stream=settings.TRADE_CHANGES_STREAM,
        maxlen=settings.TRADE_CHANGES_MAXLEN,
        block_ms=settings.SUBSCRIBE_BLOCK_MS,
    )
    ledger = TradeLedger(
        store=SqlTradeStore(session_factory, channel=channel),
        identity=AnonymousIdentity(session_factory, user_id=settings.LEDGER_USER_ID),
        channel=channel,
    )
    view = PerformanceView(
        ledger,
        on_refresh=log_statistics,
        retry_attempts=settings.REFRESH_RETRY_ATTEMPTS,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _signal_handler)

    try:
        await view.activate()
        await stop.wait()
    except asyncio.CancelledError:
        pass
    finally:
        await view.deactivate()
        await redis.disconnect()
        await engine.dispose()
        logger.info("shutdown_complete")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
