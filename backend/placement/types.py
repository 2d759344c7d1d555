from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


PLACEMENT_TYPES: tuple[str, ...] = ("pre-roll", "mid-roll", "post-roll")


class FallbackStrategy(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"
    FILL_ANYWHERE = "fill_anywhere"

    @property
    def rank(self) -> int:
        return _STRATEGY_RANK[self]


_STRATEGY_RANK = {
    FallbackStrategy.STRICT: 0,
    FallbackStrategy.RELAXED: 1,
    FallbackStrategy.FILL_ANYWHERE: 2,
}


class ConflictReason(str, Enum):
    NO_EPISODE_SCHEDULED = "no_episode_scheduled"
    SOLD = "sold"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    EXHAUSTED = "exhausted"


SEVERITY_BY_REASON: dict[ConflictReason, str] = {
    ConflictReason.SOLD: "high",
    ConflictReason.CAPACITY_EXCEEDED: "medium",
    ConflictReason.EXHAUSTED: "medium",
    ConflictReason.NO_EPISODE_SCHEDULED: "low",
}

_REASON_MESSAGES: dict[ConflictReason, str] = {
    ConflictReason.NO_EPISODE_SCHEDULED: "Show has no episode scheduled on this date.",
    ConflictReason.SOLD: "Placement is already sold or reserved.",
    ConflictReason.CAPACITY_EXCEEDED: "Per-day or weekly capacity reached for this show.",
    ConflictReason.EXHAUSTED: "No admissible inventory left for this unit.",
}


class InvalidRequest(ValueError):
    """Raised for structurally invalid placement input, before any planning work."""

    def __init__(self, message: str, *, code: str = "INVALID_REQUEST", errors: list[Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.errors = errors or []


class MissingRateError(InvalidRequest):
    def __init__(self, missing: list[dict[str, Any]]):
        super().__init__(
            f"Missing rate information for {len(missing)} show/placement type pair(s).",
            code="MISSING_RATE",
            errors=missing,
        )
        self.missing = missing


@dataclass(frozen=True)
class PlacementRequest:
    show_ids: tuple[Any, ...]
    start: date
    end: date
    weekdays: frozenset[int]
    placement_types: tuple[str, ...]
    spots_requested: int | None = None
    spots_per_week: int | None = None
    allow_multiple_per_show_per_day: bool = False
    max_spots_per_show_per_day: int | None = None
    fallback_strategy: FallbackStrategy = FallbackStrategy.STRICT

    @property
    def weekday_mask(self) -> int:
        mask = 0
        for d in self.weekdays:
            mask |= 1 << int(d)
        return mask

    @property
    def sorted_show_ids(self) -> list[Any]:
        return sorted(set(self.show_ids), key=str)

    def daily_cap(self, multi_spot_default: int = 3) -> int:
        if self.max_spots_per_show_per_day is not None:
            if not self.allow_multiple_per_show_per_day:
                return min(1, int(self.max_spots_per_show_per_day))
            return int(self.max_spots_per_show_per_day)
        return int(multi_spot_default) if self.allow_multiple_per_show_per_day else 1

    def validate(self, *, max_days: int | None = None) -> None:
        errors: list[str] = []
        if not self.show_ids:
            errors.append("showIds must not be empty")
        if self.start > self.end:
            errors.append("dateRange.start must be on or before dateRange.end")
        if not self.weekdays:
            errors.append("weekdays must not be empty")
        elif any(int(d) < 0 or int(d) > 6 for d in self.weekdays):
            errors.append("weekdays must be integers 0 (Sunday) to 6 (Saturday)")
        if not self.placement_types:
            errors.append("placementTypes must not be empty")
        else:
            unknown = [pt for pt in self.placement_types if pt not in PLACEMENT_TYPES]
            if unknown:
                errors.append(f"unknown placement types: {', '.join(unknown)}")
        if self.spots_requested is None and self.spots_per_week is None:
            errors.append("one of spotsRequested or spotsPerWeek is required")
        if self.spots_requested is not None and int(self.spots_requested) <= 0:
            errors.append("spotsRequested must be positive")
        if self.spots_per_week is not None and int(self.spots_per_week) <= 0:
            errors.append("spotsPerWeek must be positive")
        if self.max_spots_per_show_per_day is not None and int(self.max_spots_per_show_per_day) < 1:
            errors.append("maxSpotsPerShowPerDay must be at least 1")
        if max_days is not None and self.start <= self.end and (self.end - self.start).days + 1 > max_days:
            errors.append(f"dateRange spans more than {max_days} days")
        if errors:
            raise InvalidRequest("Invalid placement request", errors=errors)


@dataclass(frozen=True, order=True)
class Candidate:
    air_date: date
    show_key: str
    placement_index: int
    show_id: Any = field(compare=False)
    placement_type: str = field(compare=False)

    @property
    def slot(self) -> tuple[str, date, str]:
        return (self.show_key, self.air_date, self.placement_type)


@dataclass(frozen=True)
class SlotAvailability:
    available: bool
    reason: ConflictReason | None = None
    message: str | None = None
    episode_id: Any | None = None
    episode_title: str | None = None
    episode_number: int | None = None


@dataclass(frozen=True)
class Placement:
    show_id: Any
    air_date: date
    placement_type: str
    price: float
    episode_id: Any | None = None
    episode_title: str | None = None
    episode_number: int | None = None
    show_name: str | None = None

    @property
    def slot(self) -> tuple[str, date, str]:
        return (str(self.show_id), self.air_date, self.placement_type)


@dataclass(frozen=True)
class PlacementConflict:
    reason: ConflictReason
    show_id: Any | None = None
    air_date: date | None = None
    placement_type: str | None = None
    show_name: str | None = None
    message: str = ""

    @property
    def severity(self) -> str:
        return SEVERITY_BY_REASON[self.reason]

    @classmethod
    def for_slot(
        cls,
        reason: ConflictReason,
        *,
        show_id: Any | None = None,
        air_date: date | None = None,
        placement_type: str | None = None,
        show_name: str | None = None,
        message: str | None = None,
    ) -> "PlacementConflict":
        return cls(
            reason=reason,
            show_id=show_id,
            air_date=air_date,
            placement_type=placement_type,
            show_name=show_name,
            message=message or _REASON_MESSAGES[reason],
        )


@dataclass
class PlacementPlan:
    request: PlacementRequest
    requested: int
    placements: list[Placement] = field(default_factory=list)
    conflicts: list[PlacementConflict] = field(default_factory=list)
    week_targets: dict[str, int] = field(default_factory=dict)
    show_targets: dict[str, int] = field(default_factory=dict)
    placement_type_targets: dict[str, int] = field(default_factory=dict)

    @property
    def placeable(self) -> int:
        return len(self.placements)

    @property
    def unplaceable(self) -> int:
        return self.requested - len(self.placements)
