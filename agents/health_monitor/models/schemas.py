from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


@dataclass(frozen=True)
class MonitoredAccount:
    """One watched position. Frozen: updates replace the whole record."""
    address: str
    chat_id: int
    last_health: int
    notify_at_first_threshold: bool = True
    notify_at_second_threshold: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
    agent: str = "health_monitor"
    version: str = "1.0.0"
    accounts_monitored: int = 0
    last_cycle_at: Optional[datetime] = None
    listener_active: bool = False
