from __future__ import annotations

import unittest

from structlog.testing import capture_logs

from shared.errors import DataSourceUnavailable, DeliveryFailed, DeliveryRejected
from shared.utils.retry import RetryExecutor
from agents.health_monitor.models.schemas import MonitoredAccount
from agents.health_monitor.services.poller import HealthPoller
from agents.health_monitor.services.registry import AccountRegistry
from agents.health_monitor.services.thresholds import Thresholds
from tests.fakes import FakeNotifier, FakeReader, FakeStorage, RecordingSleep, identity_key

THRESHOLDS = Thresholds(first=25, first_with_buffer=30, second=10, second_with_buffer=15)


class _Stop(Exception):
    pass


class StopAfterSleeps(RecordingSleep):
    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit

    async def __call__(self, delay: float):
        await super().__call__(delay)
        if len(self.delays) >= self.limit:
            raise _Stop()


class HealthPollerTests(unittest.IsolatedAsyncioTestCase):
    def _setup(self, *accounts: MonitoredAccount, key_for=identity_key) -> HealthPoller:
        self.registry = AccountRegistry()
        self.registry.load(list(accounts))
        self.storage = FakeStorage(accounts)
        self.reader = FakeReader()
        self.notifier = FakeNotifier()
        self.retry_sleep = RecordingSleep()
        return HealthPoller(
            self.registry,
            self.storage,
            self.reader,
            self.notifier,
            retry=RetryExecutor(3, 1.0, sleep=self.retry_sleep),
            thresholds=THRESHOLDS,
            interval=30,
            buffer_pct=0,
            key_for=key_for,
        )

    async def test_first_tier_alerts_once_per_crossing(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))

        for health in (20, 20, 31, 20):
            self.reader.health_by_key["A"] = health
            await poller.run_cycle()

        self.assertEqual(len(self.notifier.sent), 2)
        self.assertTrue(all("20%" in text for _, text in self.notifier.sent))
        self.assertEqual(
            self.storage.updates,
            [("A", 20, False, True), ("A", 31, True, True), ("A", 20, False, True)],
        )
        self.assertEqual(poller.cycles, 4)

    async def test_crash_through_both_thresholds_sends_second_tier(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=5, last_health=40))
        self.reader.health_by_key["A"] = 5

        await poller.run_cycle()

        self.assertEqual(len(self.notifier.sent), 1)
        self.assertIn("🚨", self.notifier.sent[0][1])
        account = self.registry.get("A")
        self.assertEqual(account.last_health, 5)
        self.assertTrue(account.notify_at_first_threshold)
        self.assertFalse(account.notify_at_second_threshold)

    async def test_storage_failure_is_isolated_per_account(self) -> None:
        poller = self._setup(
            MonitoredAccount("A", chat_id=1, last_health=40),
            MonitoredAccount("B", chat_id=2, last_health=40),
        )
        self.storage.broken = {"A"}
        self.reader.health_by_key.update({"A": 20, "B": 20})

        with capture_logs() as logs:
            await poller.run_cycle()

        self.assertEqual(sorted(chat for chat, _ in self.notifier.sent), [1, 2])
        self.assertEqual(self.storage.updates, [("B", 20, False, True)])
        self.assertEqual(self.registry.get("B").last_health, 20)
        failed = [entry for entry in logs if entry["event"] == "account_evaluation_failed"]
        self.assertEqual([entry["address"] for entry in failed], ["A"])

    async def test_missing_position_is_skipped(self) -> None:
        poller = self._setup(
            MonitoredAccount("A", chat_id=1, last_health=40),
            MonitoredAccount("B", chat_id=2, last_health=40),
        )
        self.reader.health_by_key["B"] = 35

        await poller.run_cycle()

        self.assertEqual(self.registry.get("A").last_health, 40)
        self.assertEqual(self.storage.updates, [("B", 35, True, True)])
        self.assertEqual(self.notifier.sent, [])

    async def test_unchanged_health_writes_nothing(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.reader.health_by_key["A"] = 40.7

        await poller.run_cycle()

        self.assertEqual(self.storage.updates, [])
        self.assertIsNotNone(poller.last_cycle_at)

    async def test_transient_delivery_failure_is_retried(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.notifier.failures = [DeliveryFailed("timeout")]
        self.reader.health_by_key["A"] = 20

        await poller.run_cycle()

        self.assertEqual(len(self.notifier.sent), 1)
        self.assertEqual(self.notifier.attempts, 2)
        self.assertEqual(self.retry_sleep.delays, [1.0])
        self.assertEqual(self.storage.updates, [("A", 20, False, True)])

    async def test_failed_alert_leaves_state_for_next_cycle(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.notifier.failures = [DeliveryRejected("chat not found")]
        self.reader.health_by_key["A"] = 20

        await poller.run_cycle()

        self.assertEqual(self.notifier.attempts, 1)
        self.assertEqual(self.registry.get("A").last_health, 40)
        self.assertEqual(self.storage.updates, [])

        await poller.run_cycle()

        self.assertEqual(len(self.notifier.sent), 1)
        self.assertEqual(self.registry.get("A").last_health, 20)

    async def test_reregistration_during_alert_send_is_not_overwritten(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.reader.health_by_key["A"] = 20
        registry, storage = self.registry, self.storage
        send = self.notifier.send_message

        async def send_while_user_reregisters(chat_id, text):
            registry.delete("A")
            await storage.remove_accounts(["A"])
            await storage.add_account("A", 2, 22, False, True)
            registry.add(MonitoredAccount("A", chat_id=2, last_health=22, notify_at_first_threshold=False))
            await send(chat_id, text)

        self.notifier.send_message = send_while_user_reregisters

        with capture_logs() as logs:
            await poller.run_cycle()

        self.assertEqual(self.registry.get("A").chat_id, 2)
        self.assertEqual(self.storage.rows["A"].chat_id, 2)
        self.assertEqual(self.storage.updates, [])
        self.assertIn("account_replaced_during_cycle", [entry["event"] for entry in logs])

    async def test_removal_during_alert_send_skips_write(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.reader.health_by_key["A"] = 20
        registry = self.registry
        send = self.notifier.send_message

        async def send_while_user_stops(chat_id, text):
            registry.delete("A")
            await send(chat_id, text)

        self.notifier.send_message = send_while_user_stops

        await poller.run_cycle()

        self.assertIsNone(self.registry.get("A"))
        self.assertEqual(self.storage.updates, [])

    async def test_fetch_failure_aborts_cycle(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        self.reader.failures = [DataSourceUnavailable("health service", "502")] * 3

        with capture_logs() as logs:
            await poller.run_cycle()

        self.assertEqual(len(self.reader.calls), 3)
        self.assertEqual(self.retry_sleep.delays, [1.0, 2.0])
        self.assertIsNone(poller.last_cycle_at)
        self.assertEqual(poller.cycles, 0)
        self.assertIn("position_fetch_failed", [entry["event"] for entry in logs])

    async def test_fetch_is_batched(self) -> None:
        poller = self._setup(
            MonitoredAccount("A", chat_id=1, last_health=40),
            MonitoredAccount("B", chat_id=2, last_health=40),
        )

        await poller.run_cycle()

        self.assertEqual(len(self.reader.calls), 1)
        self.assertEqual(sorted(self.reader.calls[0]), ["A", "B"])

    async def test_key_derivation_failure_skips_account(self) -> None:
        def key_for(address: str) -> str:
            if address == "bad":
                raise ValueError("Invalid Base58 string")
            return address

        poller = self._setup(
            MonitoredAccount("bad", chat_id=1, last_health=40),
            MonitoredAccount("B", chat_id=2, last_health=40),
            key_for=key_for,
        )
        self.reader.health_by_key["B"] = 20

        await poller.run_cycle()

        self.assertEqual(self.reader.calls, [["B"]])
        self.assertEqual(len(self.notifier.sent), 1)

    async def test_empty_registry_skips_fetch(self) -> None:
        poller = self._setup()

        await poller.run_cycle()

        self.assertEqual(self.reader.calls, [])
        self.assertEqual(poller.cycles, 1)

    async def test_run_waits_interval_between_cycles(self) -> None:
        poller = self._setup(MonitoredAccount("A", chat_id=1, last_health=40))
        poller._sleep = StopAfterSleeps(limit=2)

        with self.assertRaises(_Stop):
            await poller.run()

        self.assertEqual(poller._sleep.delays, [30, 30])
        self.assertEqual(poller.cycles, 2)


if __name__ == "__main__":
    unittest.main()
