"""
Position Health — Address derivation for lending positions and the
user-facing health score.

The lending program keeps each wallet's collateral in a vault PDA, and the
vault owns a margin account on Drift. Raw health for those margin accounts
comes from the health service, which runs the margin protocol's SDK math.
"""
import math
import httpx
from solders.pubkey import Pubkey
from shared.config import settings
from shared.errors import DataSourceUnavailable
from shared.solana_client import UNAVAILABLE_STATUS
from agents.health_monitor.config import DRIFT_PROGRAM_ID, HEALTH_BUFFER_PCT, LENDING_PROGRAM_ID
from agents.health_monitor.errors import InvalidAddressError
import structlog

logger = structlog.get_logger()


def normalize_health(raw_health: float, buffer_pct: float = HEALTH_BUFFER_PCT) -> int:
    """Map the margin protocol's health onto the 0-100 score shown to users."""
    if raw_health <= 0:
        return 0
    if raw_health >= 100:
        return 100

    scaled = (raw_health - buffer_pct) / (1 - buffer_pct / 100)
    return math.floor(min(100, max(0, scaled)))


def _pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except (ValueError, TypeError):
        raise InvalidAddressError(address) from None


def is_valid_address(address: str) -> bool:
    try:
        _pubkey(address)
    except InvalidAddressError:
        return False
    return True


def short_address(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}"


def vault_address(owner: str, program_id: str = LENDING_PROGRAM_ID) -> str:
    vault, _bump = Pubkey.find_program_address(
        [b"vault", bytes(_pubkey(owner))],
        Pubkey.from_string(program_id),
    )
    return str(vault)


def margin_account_address(authority: str, sub_account_id: int = 0, program_id: str = DRIFT_PROGRAM_ID) -> str:
    user, _bump = Pubkey.find_program_address(
        [b"user", bytes(_pubkey(authority)), sub_account_id.to_bytes(2, "little")],
        Pubkey.from_string(program_id),
    )
    return str(user)


def position_key(owner: str) -> str:
    """Margin account holding the lending position of wallet ``owner``."""
    return margin_account_address(vault_address(owner))


class HealthApi:
    """Batch raw-health lookups against the health service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.HEALTH_API_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_health(self, keys: list[str]) -> list[float | None]:
        """Raw health per margin account, ``None`` where no account exists."""
        if not keys:
            return []

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/health", json={"accounts": keys})
        except httpx.TransportError as e:
            raise DataSourceUnavailable("health service", repr(e)) from e

        if resp.status_code in UNAVAILABLE_STATUS:
            raise DataSourceUnavailable("health service", f"HTTP {resp.status_code}")
        resp.raise_for_status()

        values = resp.json().get("health") or []
        if len(values) != len(keys):
            raise ValueError(f"health service returned {len(values)} values for {len(keys)} accounts")
        logger.debug("health_batch_fetched", accounts=len(keys), missing=values.count(None))
        return [None if value is None else float(value) for value in values]
