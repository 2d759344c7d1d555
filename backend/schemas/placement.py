from __future__ import annotations

import datetime as dt
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from placement.types import FallbackStrategy, Placement, PlacementConflict, PlacementRequest


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DateRangeIn(CamelModel):
    start: dt.date
    end: dt.date


class BulkPlacementRequest(CamelModel):
    # Shape checks only; domain rules (empty sets, ranges, counts) are enforced by PlacementRequest.validate().
    show_ids: list[uuid.UUID]
    date_range: DateRangeIn
    weekdays: list[int]
    placement_types: list[str]
    spots_requested: int | None = None
    spots_per_week: int | None = None
    allow_multiple_per_show_per_day: bool = False
    max_spots_per_show_per_day: int | None = None
    fallback_strategy: FallbackStrategy | None = None
    rate_overrides: dict[uuid.UUID, dict[str, float]] | None = None
    conflict_limit: int | None = Field(default=None, ge=0)

    def to_domain(self, *, default_strategy: str = "strict") -> PlacementRequest:
        return PlacementRequest(
            show_ids=tuple(dict.fromkeys(self.show_ids)),
            start=self.date_range.start,
            end=self.date_range.end,
            weekdays=frozenset(self.weekdays),
            placement_types=tuple(dict.fromkeys(self.placement_types)),
            spots_requested=self.spots_requested,
            spots_per_week=self.spots_per_week,
            allow_multiple_per_show_per_day=self.allow_multiple_per_show_per_day,
            max_spots_per_show_per_day=self.max_spots_per_show_per_day,
            fallback_strategy=self.fallback_strategy or FallbackStrategy(default_strategy),
        )


class PlacementIn(CamelModel):
    show_id: uuid.UUID
    air_date: dt.date = Field(alias="date")
    placement_type: str
    # Informational; the commit always re-prices from current rates.
    price: float | None = None

    def to_domain(self) -> Placement:
        return Placement(
            show_id=self.show_id,
            air_date=self.air_date,
            placement_type=self.placement_type,
            price=float(self.price or 0.0),
        )


class PlacementOut(CamelModel):
    show_id: uuid.UUID
    show_name: str | None = None
    air_date: dt.date = Field(alias="date")
    placement_type: str
    price: float
    episode_id: uuid.UUID | None = None
    episode_title: str | None = None
    episode_number: int | None = None

    @classmethod
    def from_domain(cls, p: Placement) -> "PlacementOut":
        return cls(
            show_id=p.show_id,
            show_name=p.show_name,
            air_date=p.air_date,
            placement_type=p.placement_type,
            price=p.price,
            episode_id=p.episode_id,
            episode_title=p.episode_title,
            episode_number=p.episode_number,
        )


class ConflictOut(CamelModel):
    show_id: uuid.UUID | None = None
    show_name: str | None = None
    air_date: dt.date | None = Field(default=None, alias="date")
    placement_type: str | None = None
    reason: Literal["no_episode_scheduled", "sold", "capacity_exceeded", "exhausted"]
    severity: Literal["high", "medium", "low"]
    message: str

    @classmethod
    def from_domain(cls, c: PlacementConflict) -> "ConflictOut":
        return cls(
            show_id=c.show_id,
            show_name=c.show_name,
            air_date=c.air_date,
            placement_type=c.placement_type,
            reason=c.reason.value,
            severity=c.severity,
            message=c.message,
        )


class BreakdownOut(CamelModel):
    requested: int
    placed: int


class SummaryOut(CamelModel):
    requested: int
    placeable: int
    unplaceable: int
    by_placement_type: dict[str, BreakdownOut] = Field(default_factory=dict)
    by_show: dict[str, BreakdownOut] = Field(default_factory=dict)
    by_week: dict[str, BreakdownOut] = Field(default_factory=dict)


class PlacementPreviewResponse(CamelModel):
    would_place: list[PlacementOut] = Field(default_factory=list)
    conflicts: list[ConflictOut] = Field(default_factory=list)
    conflicts_total: int = 0
    summary: SummaryOut
    correlation_id: str | None = None


class BulkCommitRequest(BulkPlacementRequest):
    # Omitted: the commit re-plans from the request against current inventory.
    placements: list[PlacementIn] | None = None
    idempotency_key: str = Field(min_length=1)
    campaign_id: uuid.UUID | None = None


class ScheduledSpotOut(CamelModel):
    id: uuid.UUID
    show_id: uuid.UUID
    air_date: dt.date = Field(alias="date")
    placement_type: str
    price: float
    episode_id: uuid.UUID | None = None
    episode_title: str | None = None
    episode_number: int | None = None
    campaign_id: uuid.UUID | None = None

    @classmethod
    def from_spot(cls, spot) -> "ScheduledSpotOut":
        return cls(
            id=spot.id,
            show_id=spot.show_id,
            air_date=spot.air_date,
            placement_type=spot.placement_type,
            price=float(spot.price),
            episode_id=spot.episode_id,
            episode_title=spot.episode_title,
            episode_number=spot.episode_number,
            campaign_id=spot.campaign_id,
        )


class CommitResultOut(CamelModel):
    spots: list[ScheduledSpotOut] = Field(default_factory=list)
    conflicts: list[ConflictOut] = Field(default_factory=list)
    placed: int = 0


class CommitResponse(CamelModel):
    success: bool
    cached: bool = False
    result: CommitResultOut
    message: str | None = None
    correlation_id: str | None = None


class AvailabilityDayOut(CamelModel):
    air_date: dt.date = Field(alias="date")
    episode_id: uuid.UUID | None = None
    episode_title: str | None = None
    episode_number: int | None = None
    # placement type -> "available" | "sold" | "not_offered"
    slots: dict[str, str] = Field(default_factory=dict)


class ShowAvailabilityResponse(CamelModel):
    show_id: uuid.UUID
    show_name: str
    start: dt.date
    end: dt.date
    days: list[AvailabilityDayOut] = Field(default_factory=list)
