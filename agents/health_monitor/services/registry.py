"""
Account Registry — In-memory copy of the monitored accounts, shared by the
health poller, the auto-repay listener and the chat commands.

Records are immutable and every mutation replaces a whole record under a
lock, so readers never observe a half-applied update.
"""
import threading
from agents.health_monitor.errors import AccountExistsError, AccountNotFoundError
from agents.health_monitor.models.schemas import MonitoredAccount
import structlog

logger = structlog.get_logger()


class AccountRegistry:
    def __init__(self):
        self._accounts: dict[str, MonitoredAccount] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return address in self._accounts

    def get(self, address: str) -> MonitoredAccount | None:
        with self._lock:
            return self._accounts.get(address)

    def set(self, address: str, account: MonitoredAccount):
        """Insert or replace the record for ``address``."""
        if account.address != address:
            raise ValueError(f"Record for {account.address} cannot be stored under {address}")
        with self._lock:
            self._accounts[address] = account

    def add(self, account: MonitoredAccount):
        with self._lock:
            if account.address in self._accounts:
                raise AccountExistsError(account.address)
            self._accounts[account.address] = account

    def replace(self, account: MonitoredAccount):
        """Replace an existing record; the address must already be present."""
        with self._lock:
            if account.address not in self._accounts:
                raise AccountNotFoundError(account.address)
            self._accounts[account.address] = account

    def replace_if(self, expected: MonitoredAccount, account: MonitoredAccount) -> bool:
        """Replace the record only while it is still ``expected``. Returns False otherwise."""
        with self._lock:
            if self._accounts.get(account.address) is not expected:
                return False
            self._accounts[account.address] = account
            return True

    def delete(self, address: str) -> MonitoredAccount:
        with self._lock:
            try:
                return self._accounts.pop(address)
            except KeyError:
                raise AccountNotFoundError(address) from None

    def entries(self) -> list[tuple[str, MonitoredAccount]]:
        """Snapshot copy, safe to iterate while other flows mutate the registry."""
        with self._lock:
            return list(self._accounts.items())

    def addresses_for_chat(self, chat_id: int) -> list[str]:
        return [address for address, account in self.entries() if account.chat_id == chat_id]

    def load(self, accounts: list[MonitoredAccount]):
        """Seed from persisted storage, replacing whatever was held before."""
        with self._lock:
            self._accounts = {account.address: account for account in accounts}
        logger.info("registry_loaded", accounts=len(accounts))
