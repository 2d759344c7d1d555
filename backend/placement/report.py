from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from placement.candidates import week_key
from placement.types import Placement, PlacementConflict, PlacementPlan


@dataclass(frozen=True)
class PlacementSummary:
    requested: int
    placeable: int
    unplaceable: int
    by_placement_type: dict[str, dict[str, int]] = field(default_factory=dict)
    by_show: dict[str, dict[str, int]] = field(default_factory=dict)
    by_week: dict[str, dict[str, int]] = field(default_factory=dict)


@dataclass(frozen=True)
class PlacementPreview:
    would_place: list[Placement]
    conflicts: list[PlacementConflict]
    conflicts_total: int
    summary: PlacementSummary


def _breakdown(targets: dict[str, int], placed: Counter) -> dict[str, dict[str, int]]:
    out = {k: {"requested": int(v), "placed": int(placed.get(k, 0))} for k, v in targets.items()}
    # fill_anywhere can land units in keys that had no target of their own.
    for k in sorted(set(placed) - set(out)):
        out[k] = {"requested": 0, "placed": int(placed[k])}
    return out


def summarize(plan: PlacementPlan) -> PlacementSummary:
    by_type = Counter(p.placement_type for p in plan.placements)
    by_show = Counter(str(p.show_id) for p in plan.placements)
    by_week = Counter(week_key(p.air_date) for p in plan.placements)

    return PlacementSummary(
        requested=plan.requested,
        placeable=plan.placeable,
        unplaceable=plan.requested - plan.placeable,
        by_placement_type=_breakdown(plan.placement_type_targets, by_type),
        by_show=_breakdown(plan.show_targets, by_show),
        by_week=_breakdown(plan.week_targets, by_week),
    )


def build_preview(plan: PlacementPlan, conflict_limit: int | None = None) -> PlacementPreview:
    """Aggregate a plan for display. The plan itself is never modified or truncated."""

    conflicts = list(plan.conflicts)
    if conflict_limit is not None and conflict_limit >= 0:
        conflicts = conflicts[:conflict_limit]
    return PlacementPreview(
        would_place=list(plan.placements),
        conflicts=conflicts,
        conflicts_total=len(plan.conflicts),
        summary=summarize(plan),
    )


def severity_counts(conflicts: list[PlacementConflict]) -> dict[str, Any]:
    counts = Counter(c.severity for c in conflicts)
    return {sev: int(counts.get(sev, 0)) for sev in ("high", "medium", "low")}


def reason_counts(conflicts: list[PlacementConflict]) -> dict[str, int]:
    counts = Counter(c.reason.value for c in conflicts)
    return dict(sorted(counts.items()))
