from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models.bulk_commit_record import BulkCommitRecord
from models.episode_inventory import EpisodeInventory
from models.scheduled_spot import ScheduledSpot, make_slot_key
from placement.availability import RateTable
from placement.candidates import eligible_dates, week_buckets
from placement.planner import plan_placements, weekly_targets
from placement.types import (
    PLACEMENT_TYPES,
    ConflictReason,
    InvalidRequest,
    Placement,
    PlacementConflict,
    PlacementRequest,
)
from services.inventory import build_rate_table, load_availability_index, load_shows


logger = logging.getLogger(__name__)


class StorageFailure(RuntimeError):
    """Raised when a write fails for a reason other than losing a slot race."""


@dataclass
class CommitResult:
    success: bool
    cached: bool
    spots: list[ScheduledSpot] = field(default_factory=list)
    conflicts: list[PlacementConflict] = field(default_factory=list)
    message: str | None = None
    correlation_id: str | None = None

    @property
    def placed(self) -> int:
        return len(self.spots)


def conflict_to_json(c: PlacementConflict) -> dict[str, Any]:
    return {
        "reason": c.reason.value,
        "show_id": None if c.show_id is None else str(c.show_id),
        "air_date": None if c.air_date is None else c.air_date.isoformat(),
        "placement_type": c.placement_type,
        "show_name": c.show_name,
        "message": c.message,
    }


def conflict_from_json(data: Mapping[str, Any]) -> PlacementConflict:
    show_id = data.get("show_id")
    air_date = data.get("air_date")
    return PlacementConflict(
        reason=ConflictReason(data["reason"]),
        show_id=uuid.UUID(show_id) if show_id else None,
        air_date=date.fromisoformat(air_date) if air_date else None,
        placement_type=data.get("placement_type"),
        show_name=data.get("show_name"),
        message=data.get("message") or "",
    )


def _spot_order(spot: ScheduledSpot) -> tuple[date, str, int]:
    pt = str(spot.placement_type)
    idx = PLACEMENT_TYPES.index(pt) if pt in PLACEMENT_TYPES else len(PLACEMENT_TYPES)
    return (spot.air_date, str(spot.show_id), idx)


def _spot_slot(spot: ScheduledSpot) -> tuple[str, date, str]:
    return (str(spot.show_id), spot.air_date, str(spot.placement_type))


def _conflict_slot(c: PlacementConflict) -> tuple[str | None, date | None, str | None]:
    return (None if c.show_id is None else str(c.show_id), c.air_date, c.placement_type)


def _summary_message(placed: int, conflicts: list[PlacementConflict]) -> str | None:
    if not conflicts:
        return None
    return f"Committed {placed} placements; {len(conflicts)} could not be placed."


def _owned_spots(db: Session, idempotency_key: str) -> list[ScheduledSpot]:
    spots = db.execute(select(ScheduledSpot).where(ScheduledSpot.idempotency_key == idempotency_key)).scalars().all()
    return sorted(spots, key=_spot_order)


def _load_previous(db: Session, idempotency_key: str, correlation_id: str | None) -> CommitResult | None:
    """Stored outcome for a finished commit, or None when the key has no commit record yet."""

    record = (
        db.execute(select(BulkCommitRecord).where(BulkCommitRecord.idempotency_key == idempotency_key))
        .scalars()
        .first()
    )
    if record is None:
        return None

    spots = _owned_spots(db, idempotency_key)
    owned = {_spot_slot(s) for s in spots}
    payload = dict(record.result or {})
    # Concurrent calls sharing a key may have booked slots the stored record lists as conflicts.
    conflicts = [
        c for c in (conflict_from_json(d) for d in payload.get("conflicts") or []) if _conflict_slot(c) not in owned
    ]
    logger.info("Replaying commit for idempotency key %s (%s spots)", idempotency_key, len(spots))
    return CommitResult(
        success=bool(spots),
        cached=True,
        spots=spots,
        conflicts=conflicts,
        message=_summary_message(len(spots), conflicts),
        correlation_id=correlation_id,
    )


def _check_submitted(request: PlacementRequest, placements: list[Placement], *, cap: int) -> None:
    """Reject placements that could never have come out of a plan for this request."""

    allowed_shows = {str(s) for s in request.show_ids}
    allowed_dates = set(eligible_dates(request))
    allowed_types = set(request.placement_types)
    _targets, requested = weekly_targets(request, week_buckets(request))

    errors: list[str] = []
    seen: set[tuple[str, date, str]] = set()
    per_day: Counter = Counter()
    for p in placements:
        label = f"{p.show_id}/{p.air_date.isoformat()}/{p.placement_type}"
        if str(p.show_id) not in allowed_shows:
            errors.append(f"{label}: show is not part of the request")
        if p.air_date not in allowed_dates:
            errors.append(f"{label}: date is outside the requested range or weekdays")
        if p.placement_type not in allowed_types:
            errors.append(f"{label}: placement type was not requested")
        key = (str(p.show_id), p.air_date, p.placement_type)
        if key in seen:
            errors.append(f"{label}: duplicated")
        seen.add(key)
        per_day[(str(p.show_id), p.air_date)] += 1

    for (show_key, d), n in sorted(per_day.items()):
        if n > cap:
            errors.append(f"{show_key}/{d.isoformat()}: {n} placements exceed the per-day cap of {cap}")
    if len(placements) > requested:
        errors.append(f"{len(placements)} placements submitted but only {requested} requested")

    if errors:
        raise InvalidRequest("Invalid placements", code="INVALID_PLACEMENTS", errors=errors)


def _reserve_and_insert(
    db: Session,
    p: Placement,
    *,
    episode_id: Any,
    episode_title: str | None,
    episode_number: int | None,
    price: float,
    idempotency_key: str,
    campaign_id: Any | None,
) -> ScheduledSpot | None:
    """One short transaction per slot. Returns None when another caller got the slot first."""

    try:
        res = db.execute(
            update(EpisodeInventory)
            .where(EpisodeInventory.episode_id == episode_id)
            .where(EpisodeInventory.placement_type == p.placement_type)
            .where(EpisodeInventory.status == "OPEN")
            .values(status="SOLD", updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.rollback()
            return None

        spot = ScheduledSpot(
            id=uuid.uuid4(),
            show_id=p.show_id,
            episode_id=episode_id,
            episode_title=episode_title,
            episode_number=episode_number,
            air_date=p.air_date,
            placement_type=p.placement_type,
            price=price,
            campaign_id=campaign_id,
            idempotency_key=idempotency_key,
            slot_key=make_slot_key(p.show_id, p.air_date, p.placement_type, episode_id),
        )
        db.add(spot)
        db.commit()
        return spot
    except IntegrityError:
        db.rollback()
        return None
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailure(
            f"Failed to persist spot {p.show_id}/{p.air_date.isoformat()}/{p.placement_type}"
        ) from exc


def _store_record(
    db: Session,
    *,
    idempotency_key: str,
    correlation_id: str | None,
    spots: list[ScheduledSpot],
    conflicts: list[PlacementConflict],
    message: str | None,
) -> None:
    record = BulkCommitRecord(
        idempotency_key=idempotency_key,
        correlation_id=correlation_id,
        result={
            "placed": len(spots),
            "spot_ids": [str(s.id) for s in spots],
            "conflicts": [conflict_to_json(c) for c in conflicts],
            "message": message,
        },
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent call with the same key stored its record first. Both calls' spots are durable
        # and replays read them back by key.
        db.rollback()
        logger.warning("Commit record for idempotency key %s already exists", idempotency_key)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailure("Failed to store commit record") from exc


def commit_placements(
    db: Session,
    request: PlacementRequest,
    placements: Iterable[Placement] | None,
    idempotency_key: str,
    *,
    rate_overrides: Mapping[Any, Mapping[str, float]] | None = None,
    campaign_id: Any | None = None,
    correlation_id: str | None = None,
) -> CommitResult:
    """Persist placements at most once per idempotency key.

    Every placement is re-checked against current storage. Slots that were taken
    since the preview come back as ``sold`` conflicts instead of failing the call.
    Spots written before a StorageFailure stay committed; retrying with the same
    key resumes the commit from the slots it does not own yet.
    """

    key = (idempotency_key or "").strip()
    if not key:
        raise InvalidRequest("Invalid commit request", errors=["idempotencyKey is required"])

    previous = _load_previous(db, key, correlation_id)
    if previous is not None:
        return previous

    owned = _owned_spots(db, key)
    owned_slots = {_spot_slot(s) for s in owned}
    if owned:
        logger.warning("Resuming interrupted commit for idempotency key %s (%s spots already written)", key, len(owned))

    request.validate(max_days=settings.max_planning_days)
    shows = load_shows(db, request.show_ids)
    show_names = {str(s.id): s.name for s in shows}
    rates: RateTable = build_rate_table(shows, rate_overrides)
    rates.ensure_rates(request.show_ids, request.placement_types)
    cap = request.daily_cap(settings.multi_spot_default_cap)

    conflicts: list[PlacementConflict] = []
    if placements is None:
        index = load_availability_index(db, show_ids=request.show_ids, start=request.start, end=request.end)
        plan = plan_placements(
            request,
            index,
            rates,
            show_names=show_names,
            multi_spot_default=settings.multi_spot_default_cap,
            max_days=settings.max_planning_days,
        )
        # Units already written under this key count towards the request.
        remaining = max(0, plan.requested - len(owned))
        to_commit = [p for p in plan.placements if p.slot not in owned_slots][:remaining]
        unplaced = [c for c in plan.conflicts if _conflict_slot(c) not in owned_slots]
        conflicts.extend(unplaced[: max(0, remaining - len(to_commit))])
    else:
        submitted = list(placements)
        _check_submitted(request, submitted, cap=cap)
        to_commit = [p for p in submitted if p.slot not in owned_slots]
        index = None
        if to_commit:
            index = load_availability_index(
                db,
                show_ids=request.show_ids,
                start=min(p.air_date for p in to_commit),
                end=max(p.air_date for p in to_commit),
            )

    logger.info(
        "Committing %s placements (idempotency key %s, campaign %s)",
        len(to_commit),
        key,
        campaign_id,
    )

    spots: list[ScheduledSpot] = []
    lost = 0
    for p in to_commit:
        show_name = show_names.get(str(p.show_id))
        avail = index.is_available(p.show_id, p.air_date, p.placement_type)
        if not avail.available:
            conflicts.append(
                PlacementConflict.for_slot(
                    ConflictReason.SOLD,
                    show_id=p.show_id,
                    air_date=p.air_date,
                    placement_type=p.placement_type,
                    show_name=show_name,
                )
            )
            continue

        spot = _reserve_and_insert(
            db,
            p,
            episode_id=avail.episode_id,
            episode_title=avail.episode_title,
            episode_number=avail.episode_number,
            price=rates.price_for(p.show_id, p.placement_type),
            idempotency_key=key,
            campaign_id=campaign_id,
        )
        if spot is None:
            lost += 1
            conflicts.append(
                PlacementConflict.for_slot(
                    ConflictReason.SOLD,
                    show_id=p.show_id,
                    air_date=p.air_date,
                    placement_type=p.placement_type,
                    show_name=show_name,
                    message="Placement was booked by another request.",
                )
            )
            continue
        spots.append(spot)

    if lost:
        logger.warning("Lost %s slot races during commit (idempotency key %s)", lost, key)

    spots = sorted(owned + spots, key=_spot_order) if owned else spots
    if not spots:
        logger.info("Nothing committed for idempotency key %s (%s conflicts)", key, len(conflicts))
        return CommitResult(
            success=False,
            cached=False,
            spots=[],
            conflicts=conflicts,
            message="No placements could be committed; every slot is unavailable.",
            correlation_id=correlation_id,
        )

    message = _summary_message(len(spots), conflicts)
    _store_record(
        db,
        idempotency_key=key,
        correlation_id=correlation_id,
        spots=spots,
        conflicts=conflicts,
        message=message,
    )
    logger.info("Committed %s spots (idempotency key %s)", len(spots), key)
    return CommitResult(
        success=True,
        cached=False,
        spots=spots,
        conflicts=conflicts,
        message=message,
        correlation_id=correlation_id,
    )
