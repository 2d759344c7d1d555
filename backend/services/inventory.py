from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.episode import Episode
from models.episode_inventory import EpisodeInventory
from models.scheduled_spot import ScheduledSpot
from models.show import Show
from placement.availability import AvailabilityIndex, EpisodeSlots, RateTable
from placement.types import PLACEMENT_TYPES, ConflictReason, InvalidRequest


logger = logging.getLogger(__name__)


def load_shows(db: Session, show_ids: Iterable[Any]) -> list[Show]:
    """Fetch the requested shows, failing fast on unknown or inactive ids."""

    wanted = list(dict.fromkeys(show_ids))
    if not wanted:
        return []
    shows = db.execute(select(Show).where(Show.id.in_(wanted))).scalars().all()
    by_id = {s.id: s for s in shows}

    missing = [str(sid) for sid in wanted if sid not in by_id]
    if missing:
        raise InvalidRequest("Some shows not found", code="SHOW_NOT_FOUND", errors=missing)
    inactive = [str(sid) for sid in wanted if not bool(by_id[sid].is_active)]
    if inactive:
        raise InvalidRequest("Some shows are not active", code="SHOW_NOT_ACTIVE", errors=inactive)
    return [by_id[sid] for sid in wanted]


def build_rate_table(shows: Iterable[Show], overrides: Mapping[Any, Mapping[str, float]] | None = None) -> RateTable:
    return RateTable.from_shows(shows, overrides=overrides)


def load_availability_index(
    db: Session,
    *,
    show_ids: Iterable[Any],
    start: date,
    end: date,
) -> AvailabilityIndex:
    """Read one consistent snapshot of episode inventory for the given shows and dates.

    A slot is open when its show has a scheduled episode that day, the episode's
    inventory row for the placement type is OPEN, and no spot is booked on it yet.
    When a show has two episodes on one day the lowest-numbered one carries the slots.
    """

    ids = list(dict.fromkeys(show_ids))
    if not ids:
        return AvailabilityIndex()

    q_episodes = (
        select(Episode)
        .where(Episode.show_id.in_(ids))
        .where(Episode.air_date >= start)
        .where(Episode.air_date <= end)
        .where(Episode.status == "SCHEDULED")
        .order_by(Episode.air_date, Episode.show_id, Episode.episode_number, Episode.id)
    )
    episodes: list[Episode] = db.execute(q_episodes).scalars().all()

    slots_by_episode: dict[Any, dict[str, str]] = defaultdict(dict)
    if episodes:
        q_inv = select(EpisodeInventory.episode_id, EpisodeInventory.placement_type, EpisodeInventory.status).where(
            EpisodeInventory.episode_id.in_([e.id for e in episodes])
        )
        for episode_id, placement_type, status in db.execute(q_inv).all():
            slots_by_episode[episode_id][str(placement_type)] = str(status)

    by_show_date: dict[tuple[Any, date], EpisodeSlots] = {}
    for e in episodes:
        key = (e.show_id, e.air_date)
        if key in by_show_date:
            continue
        by_show_date[key] = EpisodeSlots(
            episode_id=e.id,
            title=e.title,
            episode_number=e.episode_number,
            slots=dict(slots_by_episode.get(e.id, {})),
        )

    q_booked = (
        select(ScheduledSpot.show_id, ScheduledSpot.air_date, ScheduledSpot.placement_type)
        .where(ScheduledSpot.show_id.in_(ids))
        .where(ScheduledSpot.air_date >= start)
        .where(ScheduledSpot.air_date <= end)
    )
    booked = [(sid, d, str(pt)) for sid, d, pt in db.execute(q_booked).all()]

    logger.debug(
        "Availability snapshot: shows=%s range=%s..%s episodes=%s booked=%s",
        len(ids),
        start.isoformat(),
        end.isoformat(),
        len(by_show_date),
        len(booked),
    )
    return AvailabilityIndex(by_show_date, booked=booked)


def describe_show_availability(
    db: Session,
    *,
    show: Show,
    start: date,
    end: date,
    placement_type: str | None = None,
) -> list[dict[str, Any]]:
    """Per-date availability rows for one show (read-only view of the index)."""

    index = load_availability_index(db, show_ids=[show.id], start=start, end=end)
    types = [placement_type] if placement_type else list(PLACEMENT_TYPES)

    rows: list[dict[str, Any]] = []
    cur = start
    while cur <= end:
        ep = index.episode_on(show.id, cur)
        if ep is not None:
            slots = {}
            for pt in types:
                a = index.is_available(show.id, cur, pt)
                if a.available:
                    slots[pt] = "available"
                elif a.reason is ConflictReason.EXHAUSTED:
                    slots[pt] = "not_offered"
                else:
                    slots[pt] = a.reason.value if a.reason else "sold"
            rows.append(
                {
                    "date": cur,
                    "episode_id": ep.episode_id,
                    "episode_title": ep.title,
                    "episode_number": ep.episode_number,
                    "slots": slots,
                }
            )
        cur += timedelta(days=1)
    return rows
