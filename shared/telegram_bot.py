import httpx
from shared.config import settings
from shared.errors import DeliveryFailed, DeliveryRejected


class TelegramSender:
    """Sends plain-text messages through the Telegram Bot HTTP API."""

    def __init__(
        self,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = f"https://api.telegram.org/bot{token or settings.TELEGRAM_BOT_TOKEN}"
        self.timeout = timeout
        self._transport = transport

    async def send_message(self, chat_id: int, text: str, parse_mode: str | None = None):
        """Send a message to a specific Telegram chat."""
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.api_url}/sendMessage", json=payload)
        except httpx.TransportError as e:
            raise DeliveryFailed(f"sendMessage to {chat_id}: {e!r}") from e

        if resp.status_code == 429 or resp.status_code >= 500:
            raise DeliveryFailed(f"sendMessage to {chat_id} returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            try:
                description = resp.json().get("description", "")
            except ValueError:
                description = resp.text[:200]
            raise DeliveryRejected(
                f"sendMessage to {chat_id} rejected (HTTP {resp.status_code}): {description}"
            )
