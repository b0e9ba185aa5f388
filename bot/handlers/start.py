"""
/start, /help, /stop handlers and wallet address registration.
"""
from telegram import Update
from telegram.ext import ContextTypes
from agents.health_monitor.services.messages import WELCOME_MSG
from agents.health_monitor.services.monitoring import MonitoringService
import structlog

logger = structlog.get_logger()


def _monitoring(context: ContextTypes.DEFAULT_TYPE) -> MonitoringService:
    return context.bot_data["monitoring"]


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(WELCOME_MSG)


async def help_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(WELCOME_MSG)


async def stop_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await _monitoring(context).stop_monitoring(update.effective_chat.id)


async def address_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Start monitoring the wallet address sent as a plain message."""
    chat_id = update.effective_chat.id
    logger.debug("registration_requested", chat_id=chat_id)
    await _monitoring(context).start_monitoring(update.message.text or "", chat_id)
