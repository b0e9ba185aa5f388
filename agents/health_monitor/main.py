"""
Health Monitor Agent — FastAPI application (port 8010)

Watches lending positions, alerts Telegram users when their account health
crosses the warning or critical threshold, and tells them when the protocol
auto-repays their loans.

Interfaces: HTTP API + Telegram bot + Solana log subscription
"""
import asyncio
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI
from shared.config import settings
from shared.solana_client import LogStream, SolanaRpc
from shared.telegram_bot import TelegramSender
from shared.utils.logging import setup_logging
from shared.utils.retry import RetryExecutor
from shared.utils.scheduler import start_scheduler, stop_scheduler, scheduler
from agents.health_monitor.config import (
    AGENT_NAME,
    AGENT_VERSION,
    HEARTBEAT_INTERVAL_HOURS,
    RETRY_ATTEMPTS,
    RETRY_INITIAL_DELAY,
)
from agents.health_monitor.routes.api import router
from agents.health_monitor.services.health import HealthApi
from agents.health_monitor.services.listener import AutoRepayListener
from agents.health_monitor.services.monitoring import MonitoringService
from agents.health_monitor.services.poller import HealthPoller
from agents.health_monitor.services.registry import AccountRegistry
from agents.health_monitor.services.store import AccountStore
from bot.main import create_bot, start_bot, stop_bot
import structlog

logger = structlog.get_logger()

registry = AccountRegistry()
retry = RetryExecutor(RETRY_ATTEMPTS, RETRY_INITIAL_DELAY)
store = AccountStore(retry=retry)
notifier = TelegramSender()
reader = HealthApi()
log_stream = LogStream()

monitoring = MonitoringService(registry, store, reader, notifier, retry)
poller = HealthPoller(registry, store, reader, notifier, retry)
listener = AutoRepayListener(registry, SolanaRpc(), notifier, retry)


def _heartbeat_job():
    logger.info("heartbeat", accounts_monitored=len(registry), poll_cycles=poller.cycles)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("health_monitor_starting", agent=AGENT_NAME, interfaces=["api", "telegram", "logs"])

    loaded = await monitoring.load()
    app.state.registry = registry
    app.state.poller = poller
    app.state.listener = listener

    listener.subscribe(log_stream)
    poller_task = asyncio.create_task(poller.run())

    bot = None
    if settings.TELEGRAM_BOT_TOKEN:
        bot = create_bot(monitoring)
        await start_bot(bot)
    else:
        logger.warning("telegram_bot_disabled", reason="TELEGRAM_BOT_TOKEN not set")

    start_scheduler()
    scheduler.add_job(
        _heartbeat_job, "interval", hours=HEARTBEAT_INTERVAL_HOURS, id="health_monitor_heartbeat"
    )
    logger.info("health_monitor_started", accounts=loaded)

    yield

    stop_scheduler()
    if bot is not None:
        await stop_bot(bot)
    poller_task.cancel()
    with suppress(asyncio.CancelledError):
        await poller_task
    await log_stream.close()
    await listener.close()
    logger.info("health_monitor_stopped")


app = FastAPI(
    title="Lending Health Monitor",
    description="Monitors lending positions and notifies Telegram users before and when "
                "their loans are auto-repaid.",
    version=AGENT_VERSION,
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agents.health_monitor.main:app", host="0.0.0.0", port=settings.API_PORT, reload=False)
