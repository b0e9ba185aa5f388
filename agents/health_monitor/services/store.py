"""
Account Store — Durable copy of the monitored accounts (table monitored_accounts).

Every call goes through the retry executor; dropped connections surface as
DataSourceUnavailable so they are retried, business errors are not.
"""
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from shared.database import async_session
from shared.errors import DataSourceUnavailable
from shared.models.base import Base
from shared.utils.retry import DATA_SOURCE_PROFILE, RetryExecutor
from agents.health_monitor.config import RETRY_ATTEMPTS, RETRY_INITIAL_DELAY
from agents.health_monitor.errors import AccountExistsError, AccountNotFoundError
from agents.health_monitor.models.db import MonitoredAccountRow
from agents.health_monitor.models.schemas import MonitoredAccount
import structlog

logger = structlog.get_logger()


async def create_tables(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class AccountStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        retry: RetryExecutor | None = None,
    ):
        self._session_factory = session_factory or async_session
        self.retry = retry or RetryExecutor(RETRY_ATTEMPTS, RETRY_INITIAL_DELAY)

    def _session(self) -> AsyncSession:
        if self._session_factory is None:
            raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
        return self._session_factory()

    async def _run(self, operation):
        async def guarded():
            try:
                return await operation()
            except (OperationalError, InterfaceError) as e:
                raise DataSourceUnavailable("database", str(e.orig or e)) from e

        return await self.retry.execute(guarded, DATA_SOURCE_PROFILE)

    async def get_accounts(self) -> list[MonitoredAccount]:
        async def _load():
            async with self._session() as db:
                result = await db.execute(select(MonitoredAccountRow))
                return [
                    MonitoredAccount(
                        address=row.address,
                        chat_id=row.chat_id,
                        last_health=row.last_health,
                        notify_at_first_threshold=row.notify_at_first_threshold,
                        notify_at_second_threshold=row.notify_at_second_threshold,
                    )
                    for row in result.scalars().all()
                ]

        return await self._run(_load)

    async def add_account(
        self,
        address: str,
        chat_id: int,
        health: int,
        first_armed: bool = True,
        second_armed: bool = True,
    ):
        async def _insert():
            async with self._session() as db:
                if await db.get(MonitoredAccountRow, address) is not None:
                    raise AccountExistsError(address)
                db.add(MonitoredAccountRow(
                    address=address,
                    chat_id=chat_id,
                    last_health=health,
                    notify_at_first_threshold=first_armed,
                    notify_at_second_threshold=second_armed,
                ))
                try:
                    await db.commit()
                except IntegrityError as e:
                    raise AccountExistsError(address) from e

        await self._run(_insert)
        logger.debug("account_stored", address=address, chat_id=chat_id, health=health)

    async def update_account(self, address: str, health: int, first_armed: bool, second_armed: bool):
        async def _update():
            async with self._session() as db:
                result = await db.execute(
                    update(MonitoredAccountRow)
                    .where(MonitoredAccountRow.address == address)
                    .values(
                        last_health=health,
                        notify_at_first_threshold=first_armed,
                        notify_at_second_threshold=second_armed,
                    )
                )
                if result.rowcount == 0:
                    await db.rollback()
                    raise AccountNotFoundError(address)
                await db.commit()

        await self._run(_update)

    async def remove_accounts(self, addresses: list[str]):
        if not addresses:
            return

        async def _delete():
            async with self._session() as db:
                await db.execute(
                    delete(MonitoredAccountRow).where(MonitoredAccountRow.address.in_(addresses))
                )
                await db.commit()

        await self._run(_delete)
        logger.debug("accounts_removed_from_store", count=len(addresses))
