"""
Auto-Repay Listener — Watches the lending program's logs for forced repays
and tells the affected user.

Log batches that never mention the auto-repay instruction are dropped before
any RPC call. Matching batches are handled in their own task: fetch the
transaction, decode its instructions, and compare the caller with the
position owner. A caller other than the owner means the protocol liquidated
the position.
"""
import asyncio
from shared.solana_client import CompiledInstruction, LedgerTransaction, LogEvent
from shared.utils.retry import DELIVERY_PROFILE, RetryExecutor
from agents.health_monitor.config import (
    ACCOUNT_INDEX_CALLER,
    ACCOUNT_INDEX_OWNER,
    AUTO_REPAY_INSTRUCTION,
    LENDING_PROGRAM_ID,
    RETRY_ATTEMPTS,
    RETRY_INITIAL_DELAY,
)
from agents.health_monitor.services.decoder import DecodedInstruction, decode_instruction
from agents.health_monitor.services.interfaces import LogSubscriber, NotificationSink, TransactionSource
from agents.health_monitor.services.messages import auto_repay_alert
from agents.health_monitor.services.registry import AccountRegistry
import structlog

logger = structlog.get_logger()


class AutoRepayListener:
    def __init__(
        self,
        registry: AccountRegistry,
        ledger: TransactionSource,
        notifier: NotificationSink,
        retry: RetryExecutor | None = None,
        program_id: str = LENDING_PROGRAM_ID,
        instruction: str = AUTO_REPAY_INSTRUCTION,
        caller_index: int = ACCOUNT_INDEX_CALLER,
        owner_index: int = ACCOUNT_INDEX_OWNER,
    ):
        self.registry = registry
        self.ledger = ledger
        self.notifier = notifier
        self.retry = retry or RetryExecutor(RETRY_ATTEMPTS, RETRY_INITIAL_DELAY)
        self.program_id = program_id
        self.instruction = instruction
        self.caller_index = caller_index
        self.owner_index = owner_index
        self.active = False
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, stream: LogSubscriber):
        stream.on_logs(self.program_id, self.on_logs)
        self.active = True
        logger.info("auto_repay_listener_subscribed", program=self.program_id)

    async def on_logs(self, event: LogEvent):
        if event.failed:
            return
        if not any(self.instruction in line for line in event.logs):
            return

        task = asyncio.create_task(self.handle_logs(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self):
        """Wait for every in-flight log batch to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    async def close(self):
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
        self.active = False

    async def handle_logs(self, event: LogEvent):
        try:
            await self._process(event)
        except Exception as e:
            logger.error(
                "auto_repay_processing_failed",
                instruction=self.instruction,
                signature=event.signature,
                error=str(e),
            )

    async def _process(self, event: LogEvent):
        tx = await self.ledger.get_transaction(event.signature)
        if tx is None:
            logger.error("transaction_not_found", signature=event.signature)
            return

        for ix in tx.instructions:
            try:
                decoded = self._decode(tx, ix)
                if decoded is None:
                    continue
                caller = tx.account_keys[ix.accounts[self.caller_index]]
                owner = tx.account_keys[ix.accounts[self.owner_index]]
            except (IndexError, ValueError) as e:
                logger.debug("instruction_skipped", signature=event.signature, error=str(e))
                continue

            await self._correlate(event.signature, caller, owner)
            return

        logger.error("auto_repay_not_decoded", instruction=self.instruction, signature=event.signature)

    def _decode(self, tx: LedgerTransaction, ix: CompiledInstruction) -> DecodedInstruction | None:
        if tx.account_keys[ix.program_id_index] != self.program_id:
            return None
        decoded = decode_instruction(ix.data)
        if decoded is None or decoded.name.lower() != self.instruction.lower():
            return None
        return decoded

    async def _correlate(self, signature: str, caller: str, owner: str):
        if caller == owner:
            logger.info("manual_repay_detected", address=owner, signature=signature)
            return

        account = self.registry.get(owner)
        if account is None:
            logger.info("auto_repay_unmonitored", address=owner, signature=signature)
            return

        text = auto_repay_alert(owner)
        await self.retry.execute(
            lambda: self.notifier.send_message(account.chat_id, text), DELIVERY_PROFILE
        )
        logger.info("auto_repay_alert_sent", address=owner, chat_id=account.chat_id, signature=signature)
