from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping

from placement.types import ConflictReason, MissingRateError, SlotAvailability


NOT_OFFERED_MESSAGE = "Show does not offer this placement type on this episode."


@dataclass(frozen=True)
class EpisodeSlots:
    """One episode on a show's calendar and the state of each of its placement types."""

    episode_id: Any
    title: str | None = None
    episode_number: int | None = None
    # placement_type -> "OPEN" | "HELD" | "SOLD"
    slots: Mapping[str, str] = field(default_factory=dict)


class AvailabilityIndex:
    """Read-only snapshot answering "is (show, date, placementType) open?".

    The planner only ever talks to this snapshot, so a plan computed twice over the
    same index is identical regardless of what happens to storage in between.
    """

    def __init__(
        self,
        episodes: Mapping[tuple[Any, date], EpisodeSlots] | None = None,
        *,
        booked: Iterable[tuple[Any, date, str]] = (),
    ):
        self._episodes: dict[tuple[str, date], EpisodeSlots] = {}
        for (show_id, air_date), ep in (episodes or {}).items():
            self._episodes[(str(show_id), air_date)] = ep
        self._booked: set[tuple[str, date, str]] = {(str(s), d, pt) for s, d, pt in booked}

    def is_available(self, show_id: Any, air_date: date, placement_type: str) -> SlotAvailability:
        ep = self._episodes.get((str(show_id), air_date))
        if ep is None:
            return SlotAvailability(available=False, reason=ConflictReason.NO_EPISODE_SCHEDULED)

        status = str(ep.slots.get(placement_type) or "").upper()
        booked = (str(show_id), air_date, placement_type) in self._booked
        if not status and not booked:
            # The episode carries no inventory row for this placement type.
            return SlotAvailability(
                available=False,
                reason=ConflictReason.EXHAUSTED,
                message=NOT_OFFERED_MESSAGE,
                episode_id=ep.episode_id,
                episode_title=ep.title,
                episode_number=ep.episode_number,
            )
        if status != "OPEN" or booked:
            return SlotAvailability(
                available=False,
                reason=ConflictReason.SOLD,
                episode_id=ep.episode_id,
                episode_title=ep.title,
                episode_number=ep.episode_number,
            )

        return SlotAvailability(
            available=True,
            episode_id=ep.episode_id,
            episode_title=ep.title,
            episode_number=ep.episode_number,
        )

    def episode_on(self, show_id: Any, air_date: date) -> EpisodeSlots | None:
        return self._episodes.get((str(show_id), air_date))

    def __len__(self) -> int:
        return len(self._episodes)


_RATE_ATTRS = {
    "pre-roll": "pre_roll_rate",
    "mid-roll": "mid_roll_rate",
    "post-roll": "post_roll_rate",
}


class RateTable:
    """Opaque price lookup: show-level spot pricing with optional per-show overrides."""

    def __init__(
        self,
        rates: Mapping[tuple[Any, str], float | None] | None = None,
        *,
        overrides: Mapping[Any, Mapping[str, float]] | None = None,
    ):
        self._rates: dict[tuple[str, str], float] = {}
        for (show_id, placement_type), price in (rates or {}).items():
            if price is not None:
                self._rates[(str(show_id), placement_type)] = float(price)
        for show_id, by_type in (overrides or {}).items():
            for placement_type, price in by_type.items():
                if price is not None:
                    self._rates[(str(show_id), placement_type)] = float(price)

    @classmethod
    def from_shows(cls, shows: Iterable[Any], *, overrides: Mapping[Any, Mapping[str, float]] | None = None) -> "RateTable":
        rates: dict[tuple[Any, str], float | None] = {}
        for show in shows:
            for placement_type, attr in _RATE_ATTRS.items():
                rates[(show.id, placement_type)] = getattr(show, attr, None)
        return cls(rates, overrides=overrides)

    def has_rate(self, show_id: Any, placement_type: str) -> bool:
        return (str(show_id), placement_type) in self._rates

    def price_for(self, show_id: Any, placement_type: str) -> float:
        try:
            return self._rates[(str(show_id), placement_type)]
        except KeyError:
            raise MissingRateError([{"showId": str(show_id), "placementType": placement_type}]) from None

    def ensure_rates(self, show_ids: Iterable[Any], placement_types: Iterable[str]) -> None:
        types = list(placement_types)
        missing = [
            {"showId": str(sid), "placementType": pt}
            for sid in show_ids
            for pt in types
            if not self.has_rate(sid, pt)
        ]
        if missing:
            raise MissingRateError(missing)
