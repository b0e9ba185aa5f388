"""
Telegram Bot — Chat commands for starting and stopping health monitoring.

Runs inside the monitor process so commands act on the same account registry
as the poller and the auto-repay listener.
"""
from telegram.ext import Application, ApplicationBuilder, CommandHandler, MessageHandler, filters
from shared.config import settings
from agents.health_monitor.services.monitoring import MonitoringService
from bot.handlers.start import start_handler, help_handler, stop_handler, address_handler
import structlog

logger = structlog.get_logger()


def create_bot(monitoring: MonitoringService) -> Application:
    """Create and configure the Telegram bot application."""
    if not settings.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN not configured")

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()
    app.bot_data["monitoring"] = monitoring

    app.add_handler(CommandHandler("start", start_handler))
    app.add_handler(CommandHandler("help", help_handler))
    app.add_handler(CommandHandler("stop", stop_handler))

    # Anything else is treated as a wallet address
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, address_handler))

    return app


async def start_bot(app: Application):
    await app.initialize()
    await app.start()
    await app.updater.start_polling(drop_pending_updates=True)
    logger.info("telegram_bot_started")


async def stop_bot(app: Application):
    if app.updater and app.updater.running:
        await app.updater.stop()
    if app.running:
        await app.stop()
    await app.shutdown()
    logger.info("telegram_bot_stopped")
