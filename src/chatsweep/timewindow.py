from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Union

SECONDS_PER_DAY = 86400


def _now(now: float | None) -> int:
    return int(time.time() if now is None else now)


@dataclass(slots=True, frozen=True)
class AllTime:
    def includes(self, timestamp: int, now: float | None = None) -> bool:
        return True

    def describe(self) -> str:
        return "all time"


@dataclass(slots=True, frozen=True)
class OlderThan:
    days: int

    def cutoff(self, now: float | None = None) -> int:
        return _now(now) - self.days * SECONDS_PER_DAY

    def includes(self, timestamp: int, now: float | None = None) -> bool:
        return timestamp < self.cutoff(now)

    def describe(self) -> str:
        return f"older than {self.days} days"


TimeWindow = Union[AllTime, OlderThan]

PRESETS: tuple[TimeWindow, ...] = (
    AllTime(),
    OlderThan(3),
    OlderThan(7),
    OlderThan(14),
    OlderThan(30),
    OlderThan(90),
    OlderThan(180),
)


def window_from_days(days: int | None) -> TimeWindow:
    if days is None or days <= 0:
        return AllTime()
    return OlderThan(days)


@dataclass(slots=True, frozen=True)
class AnyActivity:
    def matches(self, latest: int, now: float | None = None) -> bool:
        return True

    def describe(self) -> str:
        return "any"


@dataclass(slots=True, frozen=True)
class ActiveWithin:
    days: int

    def matches(self, latest: int, now: float | None = None) -> bool:
        return latest >= _now(now) - self.days * SECONDS_PER_DAY

    def describe(self) -> str:
        return f"active within {self.days} days"


@dataclass(slots=True, frozen=True)
class InactiveFor:
    days: int

    def matches(self, latest: int, now: float | None = None) -> bool:
        return latest < _now(now) - self.days * SECONDS_PER_DAY

    def describe(self) -> str:
        return f"inactive for {self.days} days"


ActivityFilter = Union[AnyActivity, ActiveWithin, InactiveFor]
