"""
Solana RPC access — JSON-RPC over HTTP for reads, websocket log subscriptions
for program events.
"""
import asyncio
import base64
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import httpx
import websockets
from solders.transaction import VersionedTransaction
from shared.config import settings
from shared.errors import DataSourceUnavailable
import structlog

logger = structlog.get_logger()

UNAVAILABLE_STATUS = {429, 502, 503, 504}


class RpcError(Exception):
    def __init__(self, method: str, code: int | None, message: str):
        super().__init__(f"{method} failed ({code}): {message}")
        self.code = code


@dataclass
class LogEvent:
    signature: str
    logs: list[str] = field(default_factory=list)
    failed: bool = False


@dataclass
class CompiledInstruction:
    program_id_index: int
    accounts: list[int]
    data: bytes


@dataclass
class LedgerTransaction:
    signature: str
    account_keys: list[str]
    instructions: list[CompiledInstruction]


class SolanaRpc:
    def __init__(
        self,
        rpc_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url or settings.SOLANA_RPC_URL
        self.timeout = timeout or settings.RPC_TIMEOUT
        self._transport = transport
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.rpc_url, json=payload)
        except httpx.TransportError as e:
            raise DataSourceUnavailable("RPC node", f"{method}: {e!r}") from e

        if resp.status_code in UNAVAILABLE_STATUS:
            raise DataSourceUnavailable("RPC node", f"{method} returned HTTP {resp.status_code}")
        resp.raise_for_status()

        body = resp.json()
        if body.get("error"):
            err = body["error"]
            raise RpcError(method, err.get("code"), err.get("message", ""))
        return body.get("result")

    async def get_transaction(self, signature: str) -> LedgerTransaction | None:
        """Fetch a confirmed transaction and unpack its compiled instructions."""
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "base64",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result:
            return None

        raw = base64.b64decode(result["transaction"][0])
        message = VersionedTransaction.from_bytes(raw).message
        return LedgerTransaction(
            signature=signature,
            account_keys=[str(key) for key in message.account_keys],
            instructions=[
                CompiledInstruction(
                    program_id_index=ix.program_id_index,
                    accounts=list(ix.accounts),
                    data=bytes(ix.data),
                )
                for ix in message.instructions
            ],
        )


LogHandler = Callable[[LogEvent], Awaitable[None]]


class LogStream:
    """
    Websocket ``logsSubscribe`` feed. Each subscription runs as its own task
    and reconnects after ``reconnect_delay`` when the socket drops.
    """

    def __init__(self, ws_url: str | None = None, reconnect_delay: float = 5.0):
        self.ws_url = ws_url or settings.SOLANA_WS_URL
        self.reconnect_delay = reconnect_delay
        self._tasks: list[asyncio.Task] = []

    def on_logs(self, program_id: str, handler: LogHandler) -> asyncio.Task:
        task = asyncio.create_task(self._run(program_id, handler))
        self._tasks.append(task)
        return task

    async def close(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, program_id: str, handler: LogHandler):
        request = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": "confirmed"}],
        }
        while True:
            try:
                async with websockets.connect(self.ws_url, ping_interval=20) as ws:
                    await ws.send(json.dumps(request))
                    async for raw in ws:
                        msg = json.loads(raw)
                        if msg.get("method") != "logsNotification":
                            if "result" in msg:
                                logger.info("log_subscription_active", program=program_id, subscription=msg["result"])
                            elif "error" in msg:
                                logger.error("log_subscription_rejected", program=program_id, error=msg["error"])
                            continue

                        value = msg["params"]["result"]["value"]
                        await handler(LogEvent(
                            signature=value["signature"],
                            logs=value.get("logs") or [],
                            failed=value.get("err") is not None,
                        ))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("log_stream_disconnected", program=program_id, error=str(e))

            await asyncio.sleep(self.reconnect_delay)
