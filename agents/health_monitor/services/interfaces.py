"""
Collaborator interfaces used by the monitor. Production wiring lives in
main.py; tests substitute in-memory fakes.
"""
from typing import Awaitable, Callable, Protocol
from shared.solana_client import LedgerTransaction, LogEvent
from agents.health_monitor.models.schemas import MonitoredAccount


class AccountStorage(Protocol):
    async def get_accounts(self) -> list[MonitoredAccount]: ...

    async def add_account(
        self,
        address: str,
        chat_id: int,
        health: int,
        first_armed: bool = True,
        second_armed: bool = True,
    ) -> None: ...

    async def update_account(self, address: str, health: int, first_armed: bool, second_armed: bool) -> None: ...

    async def remove_accounts(self, addresses: list[str]) -> None: ...


class NotificationSink(Protocol):
    async def send_message(self, chat_id: int, text: str) -> None: ...


class PositionReader(Protocol):
    async def fetch_health(self, keys: list[str]) -> list[float | None]: ...


class TransactionSource(Protocol):
    async def get_transaction(self, signature: str) -> LedgerTransaction | None: ...


class LogSubscriber(Protocol):
    def on_logs(self, program_id: str, handler: Callable[[LogEvent], Awaitable[None]]): ...
