from __future__ import annotations

from helpers import WEEK, days, flat_rates, make_request, open_index, open_on
from placement.planner import plan_placements
from placement.report import build_preview, reason_counts, severity_counts, summarize
from placement.types import FallbackStrategy


A = "show-a"
B = "show-b"


def _two_week_plan(strategy=FallbackStrategy.STRICT):
    two_weeks = days(WEEK[0], 14)
    slots = open_on(A, two_weeks[:5], types=("pre-roll", "post-roll"))
    slots.update(open_on(B, two_weeks[7:9], types=("pre-roll",)))
    req = make_request(
        [A, B],
        start=two_weeks[0],
        end=two_weeks[-1],
        types=("pre-roll", "post-roll"),
        per_week=6,
        strategy=strategy,
    )
    return plan_placements(req, open_index(slots), flat_rates([A, B]))


def test_summary_conserves_units():
    plan = _two_week_plan()
    summary = summarize(plan)

    assert summary.requested == 12
    assert summary.placeable == len(plan.placements)
    assert summary.placeable + summary.unplaceable == summary.requested
    assert summary.unplaceable == len(plan.conflicts)


def test_breakdowns_pair_requested_with_placed():
    plan = _two_week_plan()
    summary = summarize(plan)

    assert set(summary.by_week) == {"2024-06-03", "2024-06-10"}
    assert sum(v["requested"] for v in summary.by_week.values()) == 12
    assert sum(v["placed"] for v in summary.by_week.values()) == summary.placeable

    assert set(summary.by_show) == {A, B}
    assert sum(v["requested"] for v in summary.by_show.values()) == 12
    assert summary.by_show[B]["placed"] == 2

    assert set(summary.by_placement_type) == {"pre-roll", "post-roll"}
    assert sum(v["placed"] for v in summary.by_placement_type.values()) == summary.placeable


def test_conflict_limit_only_caps_the_display_list():
    plan = _two_week_plan()
    total = len(plan.conflicts)
    assert total > 2

    preview = build_preview(plan, conflict_limit=2)
    assert len(preview.conflicts) == 2
    assert preview.conflicts_total == total
    assert len(plan.conflicts) == total
    assert preview.would_place == plan.placements

    assert len(build_preview(plan).conflicts) == total


def test_severity_and_reason_counts():
    plan = _two_week_plan()
    sev = severity_counts(plan.conflicts)
    assert set(sev) == {"high", "medium", "low"}
    assert sum(sev.values()) == len(plan.conflicts)
    assert sum(reason_counts(plan.conflicts).values()) == len(plan.conflicts)


def test_widening_strategy_never_places_less():
    plan = _two_week_plan(FallbackStrategy.FILL_ANYWHERE)
    summary = summarize(plan)
    assert summary.placeable >= summarize(_two_week_plan()).placeable
    assert summary.placeable + summary.unplaceable == summary.requested


def test_breakdown_lists_placed_keys_that_had_no_target():
    from placement.types import Placement, PlacementPlan

    req = make_request([A], spots=1)
    plan = PlacementPlan(
        request=req,
        requested=1,
        placements=[Placement(show_id=A, air_date=WEEK[0], placement_type="mid-roll", price=10.0)],
        week_targets={"2024-06-03": 1},
        show_targets={A: 1},
        placement_type_targets={"pre-roll": 1},
    )
    summary = summarize(plan)
    assert summary.by_placement_type == {
        "pre-roll": {"requested": 1, "placed": 0},
        "mid-roll": {"requested": 0, "placed": 1},
    }
