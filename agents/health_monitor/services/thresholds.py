"""
Threshold Notifier — Decides which health alert (if any) fires on a change.

Each tier fires once when health crosses down through its threshold, then
stays disarmed until health recovers to the tier's buffered level. At most
one alert fires per evaluation; the critical tier wins when both are crossed.
"""
from dataclasses import dataclass
from enum import Enum
from agents.health_monitor.config import (
    FIRST_THRESHOLD,
    FIRST_THRESHOLD_WITH_BUFFER,
    SECOND_THRESHOLD,
    SECOND_THRESHOLD_WITH_BUFFER,
)


class AlertTier(str, Enum):
    FIRST = "first"
    SECOND = "second"


@dataclass(frozen=True)
class Thresholds:
    first: int = FIRST_THRESHOLD
    first_with_buffer: int = FIRST_THRESHOLD_WITH_BUFFER
    second: int = SECOND_THRESHOLD
    second_with_buffer: int = SECOND_THRESHOLD_WITH_BUFFER

    def __post_init__(self):
        if self.first_with_buffer <= self.first or self.second_with_buffer <= self.second:
            raise ValueError("Re-arm level must be strictly above its threshold")

    def armed_at(self, health: int) -> tuple[bool, bool]:
        """Arm flags for an account first seen at ``health``."""
        return health >= self.first_with_buffer, health >= self.second_with_buffer


DEFAULT_THRESHOLDS = Thresholds()


@dataclass(frozen=True)
class Evaluation:
    fire: AlertTier | None
    first_armed: bool
    second_armed: bool


def evaluate(
    previous_health: int,
    current_health: int,
    first_armed: bool,
    second_armed: bool,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Evaluation:
    fire = None

    if (
        second_armed
        and previous_health > thresholds.second
        and current_health <= thresholds.second
    ):
        fire = AlertTier.SECOND
        second_armed = False
    elif (
        first_armed
        and previous_health > thresholds.first
        and current_health <= thresholds.first
    ):
        fire = AlertTier.FIRST
        first_armed = False

    if current_health >= thresholds.first_with_buffer:
        first_armed = True
    if current_health >= thresholds.second_with_buffer:
        second_armed = True

    return Evaluation(fire=fire, first_armed=first_armed, second_armed=second_armed)
