from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from helpers import WEEK, make_request
from models.bulk_commit_record import BulkCommitRecord
from models.episode_inventory import EpisodeInventory
from models.scheduled_spot import ScheduledSpot
from placement.types import ConflictReason, InvalidRequest, Placement
from services import commit_coordinator
from services.commit_coordinator import StorageFailure, commit_placements
from services.inventory import load_availability_index
from services.placement_service import preview_placements


def _spot_count(db) -> int:
    return db.execute(select(func.count()).select_from(ScheduledSpot)).scalar_one()


def _inventory_status(db, episode_id, placement_type="pre-roll") -> str:
    return db.execute(
        select(EpisodeInventory.status)
        .where(EpisodeInventory.episode_id == episode_id)
        .where(EpisodeInventory.placement_type == placement_type)
    ).scalar_one()


def _set_status(db, episode_id, status, placement_type="pre-roll") -> None:
    inv = db.execute(
        select(EpisodeInventory)
        .where(EpisodeInventory.episode_id == episode_id)
        .where(EpisodeInventory.placement_type == placement_type)
    ).scalar_one()
    inv.status = status
    db.commit()


@pytest.fixture()
def weekday_show(inventory):
    show = inventory.show("Morning Markets", pre=120.0)
    episodes = inventory.episodes(show, WEEK[:5])
    return show, episodes


def test_commit_persists_previewed_placements(db, weekday_show):
    show, episodes = weekday_show
    req = make_request([show], spots=3)
    preview = preview_placements(db, req)
    assert len(preview.would_place) == 3

    result = commit_placements(db, req, preview.would_place, "commit-1", correlation_id="corr-1")

    assert result.success
    assert not result.cached
    assert result.placed == 3
    assert result.conflicts == []
    assert [(s.air_date, s.placement_type, s.price) for s in result.spots] == [
        (WEEK[0], "pre-roll", 120.0),
        (WEEK[1], "pre-roll", 120.0),
        (WEEK[2], "pre-roll", 120.0),
    ]
    assert [s.episode_id for s in result.spots] == episodes[:3]
    assert _inventory_status(db, episodes[0]) == "SOLD"
    assert _inventory_status(db, episodes[3]) == "OPEN"

    record = db.execute(select(BulkCommitRecord)).scalars().one()
    assert record.idempotency_key == "commit-1"
    assert record.correlation_id == "corr-1"
    assert record.result["placed"] == 3


def test_commit_with_same_key_is_replayed(db, weekday_show):
    show, _ = weekday_show
    req = make_request([show], spots=3)
    placements = preview_placements(db, req).would_place

    first = commit_placements(db, req, placements, "same-key")
    first_ids = [s.id for s in first.spots]
    second = commit_placements(db, req, placements, "same-key")

    assert second.success
    assert second.cached
    assert [s.id for s in second.spots] == first_ids
    assert _spot_count(db) == 3
    assert db.execute(select(func.count()).select_from(BulkCommitRecord)).scalar_one() == 1


def test_slots_sold_since_preview_become_conflicts(db, weekday_show, inventory):
    show, episodes = weekday_show
    req = make_request([show], spots=3)
    placements = preview_placements(db, req).would_place

    _set_status(db, episodes[1], "SOLD")

    result = commit_placements(db, req, placements, "after-sale")
    assert result.success
    assert [s.air_date for s in result.spots] == [WEEK[0], WEEK[2]]
    assert [(c.reason, c.air_date) for c in result.conflicts] == [(ConflictReason.SOLD, WEEK[1])]
    assert result.conflicts[0].severity == "high"
    assert "could not be placed" in (result.message or "")


def test_nothing_left_means_unsuccessful_commit(db, weekday_show):
    show, _ = weekday_show
    req = make_request([show], spots=2)
    placements = preview_placements(db, req).would_place

    assert commit_placements(db, req, placements, "winner").success
    loser = commit_placements(db, req, placements, "loser")

    assert not loser.success
    assert not loser.cached
    assert loser.spots == []
    assert loser.message
    assert [c.reason for c in loser.conflicts] == [ConflictReason.SOLD, ConflictReason.SOLD]
    assert _spot_count(db) == 2
    keys = db.execute(select(BulkCommitRecord.idempotency_key)).scalars().all()
    assert keys == ["winner"]


def test_lost_race_after_revalidation_is_reported_as_sold(db, weekday_show, monkeypatch):
    show, _ = weekday_show
    req = make_request([show], spots=2)
    placements = preview_placements(db, req).would_place
    stale = load_availability_index(db, show_ids=[show], start=WEEK[0], end=WEEK[-1])

    assert commit_placements(db, req, placements[:1], "first").placed == 1

    # The second caller still sees the snapshot taken before the first commit landed.
    monkeypatch.setattr(commit_coordinator, "load_availability_index", lambda *_a, **_kw: stale)
    result = commit_placements(db, req, placements, "second")

    assert result.success
    assert [s.air_date for s in result.spots] == [WEEK[1]]
    assert [(c.reason, c.air_date) for c in result.conflicts] == [(ConflictReason.SOLD, WEEK[0])]
    assert _spot_count(db) == 2


def test_concurrent_commits_book_a_slot_once(session_factory, weekday_show):
    show, _ = weekday_show
    req = make_request([show], spots=3)
    with session_factory() as db:
        placements = preview_placements(db, req).would_place

    barrier = threading.Barrier(2)

    def _commit(key: str):
        with session_factory() as db:
            barrier.wait()
            result = commit_placements(db, req, placements, key)
            return (
                result.success,
                sorted(s.air_date for s in result.spots),
                sorted(c.air_date for c in result.conflicts),
            )

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(_commit, ["racer-a", "racer-b"]))

    booked = [d for _ok, spots, _c in outcomes for d in spots]
    lost = [d for _ok, _s, conflicts in outcomes for d in conflicts]
    assert sorted(booked) == WEEK[:3]
    assert sorted(lost) == WEEK[:3]

    with session_factory() as db:
        slot_keys = db.execute(select(ScheduledSpot.slot_key)).scalars().all()
        assert len(slot_keys) == len(set(slot_keys)) == 3


def _fail_second_slot_key(monkeypatch):
    real_slot_key = commit_coordinator.make_slot_key
    calls = {"n": 0}

    def _flaky_slot_key(*args):
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("INSERT INTO scheduled_spots", {}, Exception("disk I/O error"))
        return real_slot_key(*args)

    monkeypatch.setattr(commit_coordinator, "make_slot_key", _flaky_slot_key)
    return real_slot_key


def test_storage_failure_keeps_earlier_spots(db, weekday_show, monkeypatch):
    show, episodes = weekday_show
    req = make_request([show], spots=3)
    placements = preview_placements(db, req).would_place

    real_slot_key = _fail_second_slot_key(monkeypatch)
    with pytest.raises(StorageFailure):
        commit_placements(db, req, placements, "flaky")

    assert _spot_count(db) == 1
    assert _inventory_status(db, episodes[0]) == "SOLD"
    assert _inventory_status(db, episodes[1]) == "OPEN"
    assert db.execute(select(func.count()).select_from(BulkCommitRecord)).scalar_one() == 0

    # The retry keeps the spot already owned by the key and commits the rest.
    monkeypatch.setattr(commit_coordinator, "make_slot_key", real_slot_key)
    retry = commit_placements(db, req, placements, "flaky")
    assert retry.success
    assert not retry.cached
    assert [s.air_date for s in retry.spots] == WEEK[:3]
    assert retry.conflicts == []
    assert retry.message is None
    assert _spot_count(db) == 3

    replay = commit_placements(db, req, placements, "flaky")
    assert replay.cached
    assert [s.id for s in replay.spots] == [s.id for s in retry.spots]


def test_interrupted_replan_commit_does_not_overbook(db, weekday_show, monkeypatch):
    show, _ = weekday_show
    req = make_request([show], spots=3)

    real_slot_key = _fail_second_slot_key(monkeypatch)
    with pytest.raises(StorageFailure):
        commit_placements(db, req, None, "replan-flaky")

    monkeypatch.setattr(commit_coordinator, "make_slot_key", real_slot_key)
    retry = commit_placements(db, req, None, "replan-flaky")
    assert retry.success
    assert [s.air_date for s in retry.spots] == WEEK[:3]
    assert retry.conflicts == []
    assert _spot_count(db) == 3


def test_replay_drops_conflicts_for_slots_the_key_owns(db, weekday_show):
    show, episodes = weekday_show
    req = make_request([show], spots=2)
    placements = preview_placements(db, req).would_place

    _set_status(db, episodes[1], "SOLD")
    first = commit_placements(db, req, placements, "shared")
    assert [(c.reason, c.air_date) for c in first.conflicts] == [(ConflictReason.SOLD, WEEK[1])]

    # A second call under the same key books the slot the first one reported as sold.
    _set_status(db, episodes[1], "OPEN")
    sibling = commit_coordinator._reserve_and_insert(
        db,
        placements[1],
        episode_id=episodes[1],
        episode_title=None,
        episode_number=None,
        price=120.0,
        idempotency_key="shared",
        campaign_id=None,
    )
    assert sibling is not None
    commit_coordinator._store_record(
        db, idempotency_key="shared", correlation_id=None, spots=[sibling], conflicts=[], message=None
    )
    assert db.execute(select(func.count()).select_from(BulkCommitRecord)).scalar_one() == 1

    replay = commit_placements(db, req, placements, "shared")
    assert replay.cached
    assert [s.air_date for s in replay.spots] == [WEEK[0], WEEK[1]]
    assert replay.conflicts == []
    assert replay.message is None


def test_commit_without_placements_replans(db, weekday_show):
    show, _ = weekday_show
    req = make_request([show], spots=7)
    result = commit_placements(db, req, None, "replan")

    assert result.success
    assert result.placed == 5
    assert [c.reason for c in result.conflicts] == [ConflictReason.NO_EPISODE_SCHEDULED] * 2


def test_commit_rejects_placements_outside_the_request(db, weekday_show):
    show, _ = weekday_show
    req = make_request([show], end=WEEK[1], spots=2)

    with pytest.raises(InvalidRequest) as exc:
        commit_placements(db, req, [Placement(show_id=show, air_date=WEEK[3], placement_type="pre-roll", price=0)], "k1")
    assert exc.value.code == "INVALID_PLACEMENTS"

    dup = Placement(show_id=show, air_date=WEEK[0], placement_type="pre-roll", price=0)
    with pytest.raises(InvalidRequest):
        commit_placements(db, req, [dup, dup], "k2")

    with pytest.raises(InvalidRequest):
        commit_placements(db, req, [dup], "   ")
    assert _spot_count(db) == 0


def test_commit_reprices_from_current_rates(db, weekday_show):
    show, _ = weekday_show
    req = make_request([show], spots=1)
    submitted = [Placement(show_id=show, air_date=WEEK[0], placement_type="pre-roll", price=1.0)]

    result = commit_placements(db, req, submitted, "priced", rate_overrides={show: {"pre-roll": 90.0}})
    assert [s.price for s in result.spots] == [90.0]
