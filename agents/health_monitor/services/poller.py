"""
Health Poller — Periodically re-evaluates every monitored account and sends
threshold alerts.

One cycle: snapshot the registry, batch-fetch raw health for all positions,
normalize, run the threshold notifier on changed values, send alerts, then
write the new health and arm flags back to the registry and the store. The
next cycle starts POLL_INTERVAL seconds after the previous one finished.
"""
import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable
from shared.utils.retry import DATA_SOURCE_PROFILE, DELIVERY_PROFILE, RetryExecutor
from agents.health_monitor.config import HEALTH_BUFFER_PCT, POLL_INTERVAL, RETRY_ATTEMPTS, RETRY_INITIAL_DELAY
from agents.health_monitor.models.schemas import MonitoredAccount
from agents.health_monitor.services.health import normalize_health, position_key
from agents.health_monitor.services.interfaces import AccountStorage, NotificationSink, PositionReader
from agents.health_monitor.services.messages import health_alert
from agents.health_monitor.services.registry import AccountRegistry
from agents.health_monitor.services.thresholds import DEFAULT_THRESHOLDS, Thresholds, evaluate
import structlog

logger = structlog.get_logger()


class HealthPoller:
    def __init__(
        self,
        registry: AccountRegistry,
        storage: AccountStorage,
        reader: PositionReader,
        notifier: NotificationSink,
        retry: RetryExecutor | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        interval: float = POLL_INTERVAL,
        buffer_pct: float = HEALTH_BUFFER_PCT,
        key_for: Callable[[str], str] = position_key,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.storage = storage
        self.reader = reader
        self.notifier = notifier
        self.retry = retry or RetryExecutor(RETRY_ATTEMPTS, RETRY_INITIAL_DELAY)
        self.thresholds = thresholds
        self.interval = interval
        self.buffer_pct = buffer_pct
        self.key_for = key_for
        self._sleep = sleep
        self.last_cycle_at: datetime | None = None
        self.cycles = 0

    async def run(self):
        """Poll until cancelled."""
        logger.info("health_poller_started", interval_sec=self.interval, accounts=len(self.registry))
        while True:
            await self.run_cycle()
            await self._sleep(self.interval)

    async def run_cycle(self):
        tracked: list[tuple[MonitoredAccount, str]] = []
        for address, account in self.registry.entries():
            try:
                tracked.append((account, self.key_for(address)))
            except Exception as e:
                logger.error("position_key_failed", address=address, error=str(e))

        if tracked:
            keys = [key for _, key in tracked]
            try:
                raw_healths = await self.retry.execute(
                    lambda: self.reader.fetch_health(keys), DATA_SOURCE_PROFILE
                )
            except Exception as e:
                logger.error("position_fetch_failed", accounts=len(keys), error=str(e))
                return

            for (account, _), raw_health in zip(tracked, raw_healths):
                try:
                    await self._evaluate_account(account, raw_health)
                except Exception as e:
                    logger.error("account_evaluation_failed", address=account.address, error=str(e))

        self.cycles += 1
        self.last_cycle_at = datetime.now(timezone.utc)

    async def _evaluate_account(self, account: MonitoredAccount, raw_health: float | None):
        if raw_health is None:
            logger.warning("position_not_found", address=account.address)
            return

        health = normalize_health(raw_health, self.buffer_pct)
        if health == account.last_health:
            return

        result = evaluate(
            account.last_health,
            health,
            account.notify_at_first_threshold,
            account.notify_at_second_threshold,
            self.thresholds,
        )

        if result.fire is not None:
            text = health_alert(result.fire, account.address, health)
            try:
                await self.retry.execute(
                    lambda: self.notifier.send_message(account.chat_id, text), DELIVERY_PROFILE
                )
            except Exception as e:
                # No update: the next cycle sees the same drop and alerts again
                logger.error(
                    "health_alert_failed",
                    address=account.address,
                    tier=result.fire.value,
                    error=str(e),
                )
                return
            logger.info(
                "health_alert_sent",
                address=account.address,
                tier=result.fire.value,
                previous=account.last_health,
                current=health,
            )

        updated = replace(
            account,
            last_health=health,
            notify_at_first_threshold=result.first_armed,
            notify_at_second_threshold=result.second_armed,
        )
        if not self.registry.replace_if(account, updated):
            current = self.registry.get(account.address)
            event = "account_removed_during_cycle" if current is None else "account_replaced_during_cycle"
            logger.info(event, address=account.address)
            return

        await self.storage.update_account(
            account.address, health, result.first_armed, result.second_armed
        )
