from __future__ import annotations

import unittest
from datetime import datetime, timezone
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from agents.health_monitor.models.schemas import MonitoredAccount
from agents.health_monitor.routes.api import router
from agents.health_monitor.services.messages import WELCOME_MSG
from agents.health_monitor.services.registry import AccountRegistry
from bot.handlers.start import address_handler, help_handler, start_handler, stop_handler


class HealthRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app = FastAPI()
        self.app.include_router(router)
        self.client = TestClient(self.app)

    def test_reports_starting_before_wiring(self) -> None:
        resp = self.client.get("/api/v1/health-monitor/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "starting")

    def test_reports_monitor_state(self) -> None:
        registry = AccountRegistry()
        registry.add(MonitoredAccount("A", chat_id=1, last_health=50))
        finished = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.app.state.registry = registry
        self.app.state.poller = SimpleNamespace(last_cycle_at=finished)
        self.app.state.listener = SimpleNamespace(active=True)

        body = self.client.get("/api/v1/health-monitor/health").json()

        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["agent"], "health_monitor")
        self.assertEqual(body["accounts_monitored"], 1)
        self.assertTrue(body["listener_active"])
        self.assertTrue(body["last_cycle_at"].startswith("2024-05-01T12:00:00"))


class _Message:
    def __init__(self, text: str = ""):
        self.text = text
        self.replies: list[str] = []

    async def reply_text(self, text: str):
        self.replies.append(text)


class _Monitoring:
    def __init__(self):
        self.started: list[tuple[str, int]] = []
        self.stopped: list[int] = []

    async def start_monitoring(self, address: str, chat_id: int):
        self.started.append((address, chat_id))

    async def stop_monitoring(self, chat_id: int):
        self.stopped.append(chat_id)


class BotHandlerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.monitoring = _Monitoring()
        self.context = SimpleNamespace(bot_data={"monitoring": self.monitoring})

    def _update(self, text: str = "") -> SimpleNamespace:
        return SimpleNamespace(message=_Message(text), effective_chat=SimpleNamespace(id=42))

    async def test_start_and_help_reply_with_welcome(self) -> None:
        for handler in (start_handler, help_handler):
            update = self._update("/start")
            await handler(update, self.context)
            self.assertEqual(update.message.replies, [WELCOME_MSG])

    async def test_plain_text_starts_monitoring(self) -> None:
        await address_handler(self._update("So11111111111111111111111111111111111111112"), self.context)
        self.assertEqual(self.monitoring.started, [("So11111111111111111111111111111111111111112", 42)])

    async def test_stop_command(self) -> None:
        await stop_handler(self._update("/stop"), self.context)
        self.assertEqual(self.monitoring.stopped, [42])


if __name__ == "__main__":
    unittest.main()
