from __future__ import annotations

from datetime import date, timedelta

from placement.availability import AvailabilityIndex, EpisodeSlots, RateTable
from placement.types import PLACEMENT_TYPES, FallbackStrategy, PlacementRequest


# Monday 2024-06-03 .. Sunday 2024-06-09
MON = date(2024, 6, 3)
WEEK = [MON + timedelta(days=i) for i in range(7)]
ALL_DAYS = frozenset(range(7))


def days(start: date, n: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(n)]


def open_index(slots: dict[tuple[str, date], dict[str, str]], *, booked=()) -> AvailabilityIndex:
    """Build an index from {(show, date): {placement_type: status}}; missing types are not open."""

    episodes = {
        key: EpisodeSlots(episode_id=f"ep-{key[0]}-{key[1].isoformat()}", title=f"{key[0]} {key[1]}", slots=statuses)
        for key, statuses in slots.items()
    }
    return AvailabilityIndex(episodes, booked=booked)


def open_on(show: str, dates, types=("pre-roll",)) -> dict[tuple[str, date], dict[str, str]]:
    return {(show, d): {pt: "OPEN" for pt in types} for d in dates}


def flat_rates(shows, price: float = 100.0) -> RateTable:
    return RateTable({(s, pt): price for s in shows for pt in PLACEMENT_TYPES})


def make_request(
    shows,
    *,
    start: date = WEEK[0],
    end: date = WEEK[-1],
    weekdays=ALL_DAYS,
    types=("pre-roll",),
    spots: int | None = None,
    per_week: int | None = None,
    strategy: FallbackStrategy = FallbackStrategy.STRICT,
    allow_multiple: bool = False,
    max_per_day: int | None = None,
) -> PlacementRequest:
    return PlacementRequest(
        show_ids=tuple(shows),
        start=start,
        end=end,
        weekdays=frozenset(weekdays),
        placement_types=tuple(types),
        spots_requested=spots,
        spots_per_week=per_week,
        allow_multiple_per_show_per_day=allow_multiple,
        max_spots_per_show_per_day=max_per_day,
        fallback_strategy=strategy,
    )
