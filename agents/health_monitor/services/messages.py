"""
User-facing message texts.
"""
from agents.health_monitor.config import FIRST_THRESHOLD, SECOND_THRESHOLD
from agents.health_monitor.services.health import short_address
from agents.health_monitor.services.thresholds import AlertTier

WELCOME_MSG = (
    "Send me the address of a wallet with a lending account and I'll let you know "
    "when its health gets low.\n\n"
    "/stop — stop monitoring your accounts\n"
    "/help — this message"
)

INVALID_ADDRESS_MSG = "That doesn't look like a wallet address. Please send a valid base58 wallet address."

NOT_FOUND_MSG = (
    "I couldn't find a lending account with this wallet address. Please send the address "
    "of a wallet that's been used to create an account."
)

STARTED_MSG = (
    "I've started monitoring your account health! I'll send you a message if:\n"
    f"- Your health drops below {FIRST_THRESHOLD}%\n"
    f"- Your health drops below {SECOND_THRESHOLD}%\n"
    "- Your loan is auto-repaid using your collateral (at 0%)\n\n"
    "Your current account health is {health}%"
)

NOTIFICATIONS_HINT_MSG = "Be sure to turn on notifications in your Telegram app to receive alerts! 🔔"

STOP_HINT_MSG = "Send /stop to stop receiving messages."

ALREADY_MONITORED_MSG = "That account is already being monitored, its current health is {health}%"

NOTHING_MONITORED_MSG = "You don't have any accounts being monitored."

STOPPED_MSG = (
    "I've stopped monitoring your accounts. Just send another address if you want me "
    "to start monitoring again!"
)

ERROR_MSG = "Sorry, something went wrong. I've notified the team and we'll look into it ASAP."


def health_alert(tier: AlertTier, address: str, health: int) -> str:
    display = short_address(address)
    if tier is AlertTier.SECOND:
        return (
            f"🚨 Your account health ({display}) has dropped to {health}%. If you don't add "
            "more collateral, your loans will be auto-repaid at market rate!"
        )
    return (
        f"Your account health ({display}) has dropped to {health}%. Please add more "
        "collateral to your account to avoid your loans being auto-repaid."
    )


def auto_repay_alert(address: str) -> str:
    return (
        f"💰 Your loans for account {short_address(address)} have automatically been repaid "
        "by selling your collateral at market rate."
    )
