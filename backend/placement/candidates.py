from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterator

from placement.types import Candidate, InvalidRequest, PlacementRequest


def js_weekday(d: date) -> int:
    """0 = Sunday ... 6 = Saturday, matching the request's `weekdays` convention."""
    return (d.weekday() + 1) % 7


def week_start(d: date) -> date:
    return d - timedelta(days=d.weekday())


def week_key(d: date) -> str:
    return week_start(d).isoformat()


def make_candidate(show_id: Any, air_date: date, placement_type: str, placement_index: int) -> Candidate:
    return Candidate(
        air_date=air_date,
        show_key=str(show_id),
        placement_index=placement_index,
        show_id=show_id,
        placement_type=placement_type,
    )


def eligible_dates(request: PlacementRequest) -> list[date]:
    out: list[date] = []
    cur = request.start
    while cur <= request.end:
        if js_weekday(cur) in request.weekdays:
            out.append(cur)
        cur += timedelta(days=1)
    return out


def week_buckets(request: PlacementRequest) -> list[str]:
    seen: list[str] = []
    for d in eligible_dates(request):
        k = week_key(d)
        if not seen or seen[-1] != k:
            seen.append(k)
    return seen


class CandidateSpace:
    """Lazy, restartable enumeration of structurally eligible candidates.

    Order is date ascending, then show id, then placement type in request order.
    Each call to ``iter()`` starts over; nothing is cached.
    """

    def __init__(self, request: PlacementRequest):
        self.request = request
        self._show_ids = request.sorted_show_ids

    def __iter__(self) -> Iterator[Candidate]:
        cur = self.request.start
        one_day = timedelta(days=1)
        while cur <= self.request.end:
            if js_weekday(cur) in self.request.weekdays:
                for show_id in self._show_ids:
                    for idx, pt in enumerate(self.request.placement_types):
                        yield make_candidate(show_id, cur, pt, idx)
            cur += one_day

    def __len__(self) -> int:
        return len(eligible_dates(self.request)) * len(self._show_ids) * len(self.request.placement_types)


def generate_candidates(request: PlacementRequest, *, max_days: int | None = None) -> CandidateSpace:
    request.validate(max_days=max_days)
    if not eligible_dates(request):
        raise InvalidRequest(
            "Invalid placement request",
            errors=["dateRange contains no date matching the selected weekdays"],
        )
    return CandidateSpace(request)
