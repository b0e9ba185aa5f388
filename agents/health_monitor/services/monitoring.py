"""
Monitoring Service — Starts and stops monitoring on behalf of a chat.
"""
from shared.utils.retry import DATA_SOURCE_PROFILE, DELIVERY_PROFILE, RetryExecutor
from agents.health_monitor.config import HEALTH_BUFFER_PCT, RETRY_ATTEMPTS, RETRY_INITIAL_DELAY
from agents.health_monitor.errors import AccountExistsError, AccountNotFoundError, PositionNotFoundError
from agents.health_monitor.models.schemas import MonitoredAccount
from agents.health_monitor.services import messages
from agents.health_monitor.services.health import is_valid_address, normalize_health, position_key
from agents.health_monitor.services.interfaces import AccountStorage, NotificationSink, PositionReader
from agents.health_monitor.services.registry import AccountRegistry
from agents.health_monitor.services.thresholds import DEFAULT_THRESHOLDS, Thresholds
import structlog

logger = structlog.get_logger()


class MonitoringService:
    def __init__(
        self,
        registry: AccountRegistry,
        storage: AccountStorage,
        reader: PositionReader,
        notifier: NotificationSink,
        retry: RetryExecutor | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        buffer_pct: float = HEALTH_BUFFER_PCT,
        key_for=position_key,
    ):
        self.registry = registry
        self.storage = storage
        self.reader = reader
        self.notifier = notifier
        self.retry = retry or RetryExecutor(RETRY_ATTEMPTS, RETRY_INITIAL_DELAY)
        self.thresholds = thresholds
        self.buffer_pct = buffer_pct
        self.key_for = key_for

    async def load(self) -> int:
        """Seed the registry from storage. Called once at startup."""
        accounts = await self.storage.get_accounts()
        self.registry.load(accounts)
        return len(accounts)

    async def current_health(self, address: str) -> int:
        key = self.key_for(address)
        raw = await self.retry.execute(lambda: self.reader.fetch_health([key]), DATA_SOURCE_PROFILE)
        if not raw or raw[0] is None:
            raise PositionNotFoundError(address)
        return normalize_health(raw[0], self.buffer_pct)

    async def start_monitoring(self, address: str, chat_id: int) -> MonitoredAccount | None:
        """Register ``address`` for alerts in ``chat_id``. Returns the new record, if any."""
        address = address.strip()
        try:
            if not is_valid_address(address):
                await self._reply(chat_id, messages.INVALID_ADDRESS_MSG)
                return None

            try:
                health = await self.current_health(address)
            except PositionNotFoundError:
                logger.info("position_not_found_for_registration", address=address, chat_id=chat_id)
                await self._reply(chat_id, messages.NOT_FOUND_MSG)
                return None

            if address in self.registry:
                await self._reply(chat_id, messages.ALREADY_MONITORED_MSG.format(health=health))
                return None

            first_armed, second_armed = self.thresholds.armed_at(health)
            try:
                await self.storage.add_account(address, chat_id, health, first_armed, second_armed)
            except AccountExistsError:
                await self._reply(chat_id, messages.ALREADY_MONITORED_MSG.format(health=health))
                return None

            account = MonitoredAccount(
                address=address,
                chat_id=chat_id,
                last_health=health,
                notify_at_first_threshold=first_armed,
                notify_at_second_threshold=second_armed,
            )
            self.registry.add(account)

            await self._reply(chat_id, messages.STARTED_MSG.format(health=health))
            await self._reply(chat_id, messages.NOTIFICATIONS_HINT_MSG)
            await self._reply(chat_id, messages.STOP_HINT_MSG)
            logger.info("monitoring_started", address=address, chat_id=chat_id, health=health)
            return account

        except Exception as e:
            logger.error("start_monitoring_failed", address=address, chat_id=chat_id, error=str(e))
            await self._reply_after_error(chat_id)
            return None

    async def stop_monitoring(self, chat_id: int) -> list[str]:
        """Stop every account registered from ``chat_id``. Returns the removed addresses."""
        try:
            addresses = self.registry.addresses_for_chat(chat_id)
            if not addresses:
                await self._reply(chat_id, messages.NOTHING_MONITORED_MSG)
                return []

            await self.storage.remove_accounts(addresses)
            for address in addresses:
                try:
                    self.registry.delete(address)
                except AccountNotFoundError:
                    logger.debug("account_already_removed", address=address)

            await self._reply(chat_id, messages.STOPPED_MSG)
            logger.info("monitoring_stopped", chat_id=chat_id, addresses=addresses)
            return addresses

        except Exception as e:
            logger.error("stop_monitoring_failed", chat_id=chat_id, error=str(e))
            await self._reply_after_error(chat_id)
            return []

    async def _reply(self, chat_id: int, text: str):
        await self.retry.execute(lambda: self.notifier.send_message(chat_id, text), DELIVERY_PROFILE)

    async def _reply_after_error(self, chat_id: int):
        try:
            await self._reply(chat_id, messages.ERROR_MSG)
        except Exception as e:
            logger.error("error_reply_failed", chat_id=chat_id, error=str(e))
