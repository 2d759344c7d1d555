from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from math import ceil
from typing import Any, Callable, Iterable, Mapping

from placement.availability import AvailabilityIndex, RateTable
from placement.candidates import generate_candidates, week_buckets, week_key
from placement.types import (
    Candidate,
    ConflictReason,
    FallbackStrategy,
    Placement,
    PlacementConflict,
    PlacementPlan,
    PlacementRequest,
    SlotAvailability,
)


logger = logging.getLogger(__name__)

# Scope key used for flat (non-weekly) requests: one bucket spanning the whole range.
WHOLE_RANGE = "*"

Slot = tuple[str, date, str]  # (show_key, air_date, placement_type)


def weekly_targets(request: PlacementRequest, buckets: list[str]) -> tuple[dict[str, int], int]:
    """Per-week unit targets and the total number of requested units.

    Weeks are filled in order; the final week absorbs whatever the per-week figure
    could not cover so that targets always sum to the requested total.
    """

    n = len(buckets)
    if request.spots_per_week is not None:
        per_week = int(request.spots_per_week)
        total = int(request.spots_requested) if request.spots_requested is not None else per_week * n
    else:
        total = int(request.spots_requested or 0)
        per_week = ceil(total / n) if n else 0

    targets: dict[str, int] = {}
    remaining = total
    for k in buckets:
        t = min(per_week, remaining)
        targets[k] = t
        remaining -= t
    if remaining > 0 and buckets:
        targets[buckets[-1]] += remaining
    return targets, total


def _split(total: int, keys: list[str], offset: int) -> tuple[dict[str, int], int]:
    """Even split of ``total`` over ``keys``; the rounding extra starts at ``offset``."""

    k = len(keys)
    if not k:
        return {}, offset
    base, extra = divmod(int(total), k)
    shares = {key: base + (1 if (i - offset) % k < extra else 0) for i, key in enumerate(keys)}
    return shares, (offset + extra) % k


class _Planner:
    def __init__(
        self,
        request: PlacementRequest,
        index: AvailabilityIndex,
        rates: RateTable,
        *,
        show_names: Mapping[Any, str] | None,
        multi_spot_default: int,
        max_days: int | None,
    ):
        self.request = request
        self.index = index
        self.rates = rates
        self.show_names = {str(k): v for k, v in (show_names or {}).items()}
        self.cap = request.daily_cap(multi_spot_default)
        self.weekly = request.spots_per_week is not None
        self.strategy = FallbackStrategy(request.fallback_strategy)

        self.candidates: list[Candidate] = list(generate_candidates(request, max_days=max_days))
        self.show_keys: list[str] = [str(s) for s in request.sorted_show_ids]
        self.show_id_by_key: dict[str, Any] = {str(s): s for s in request.sorted_show_ids}
        self.types: list[str] = list(request.placement_types)

        self.by_show: dict[str, list[Candidate]] = defaultdict(list)
        for c in self.candidates:
            self.by_show[c.show_key].append(c)

        # Single snapshot read per candidate; every later decision uses this.
        self.availability: dict[Slot, SlotAvailability] = {
            c.slot: index.is_available(c.show_id, c.air_date, c.placement_type) for c in self.candidates
        }

        self.buckets = week_buckets(request)
        self.week_targets, self.requested = weekly_targets(request, self.buckets)
        self.scope_targets: dict[str, int] = (
            dict(self.week_targets) if self.weekly else {WHOLE_RANGE: self.requested}
        )

        # Per-scope shares: shows split the scope target exactly, types are capped at ceil(target / types).
        self.show_share: dict[tuple[str, str], int] = {}
        self.type_share: dict[tuple[str, str], int] = {}
        self.type_cap: dict[str, int] = {}
        show_offset = type_offset = 0
        for scope, target in self.scope_targets.items():
            shares, show_offset = _split(target, self.show_keys, show_offset)
            self.show_share.update({(scope, s): n for s, n in shares.items()})
            shares, type_offset = _split(target, self.types, type_offset)
            self.type_share.update({(scope, pt): n for pt, n in shares.items()})
            self.type_cap[scope] = ceil(target / len(self.types)) if self.types else 0

        self.show_targets: dict[str, int] = {s: 0 for s in self.show_keys}
        for (_scope, s), n in self.show_share.items():
            self.show_targets[s] += n
        self.type_targets: dict[str, int] = {pt: 0 for pt in self.types}
        for (_scope, pt), n in self.type_share.items():
            self.type_targets[pt] += n

        self.used: set[Slot] = set()
        self.day_counts: dict[tuple[str, date], int] = defaultdict(int)
        self.show_counts: dict[str, int] = {k: 0 for k in self.show_keys}
        self.scope_placed: dict[str, int] = defaultdict(int)
        self.strict_show: dict[tuple[str, str], int] = defaultdict(int)
        self.strict_type: dict[tuple[str, str], int] = defaultdict(int)
        self.placements: list[Placement] = []

    @property
    def total_left(self) -> int:
        return self.requested - len(self.placements)

    def _bucket_of(self, c: Candidate) -> str:
        return week_key(c.air_date) if self.weekly else WHOLE_RANGE

    # -- admissibility ---------------------------------------------------------------

    def _open(self, c: Candidate) -> bool:
        if c.slot in self.used:
            return False
        if not self.availability[c.slot].available:
            return False
        return self.day_counts[(c.show_key, c.air_date)] < self.cap

    def _scope_has_room(self, c: Candidate) -> bool:
        scope = self._bucket_of(c)
        return self.scope_placed[scope] < self.scope_targets.get(scope, 0)

    # -- placement -------------------------------------------------------------------

    def _place(self, c: Candidate) -> None:
        avail = self.availability[c.slot]
        self.placements.append(
            Placement(
                show_id=c.show_id,
                air_date=c.air_date,
                placement_type=c.placement_type,
                price=self.rates.price_for(c.show_id, c.placement_type),
                episode_id=avail.episode_id,
                episode_title=avail.episode_title,
                episode_number=avail.episode_number,
                show_name=self.show_names.get(c.show_key),
            )
        )
        self.used.add(c.slot)
        self.day_counts[(c.show_key, c.air_date)] += 1
        self.show_counts[c.show_key] += 1
        self.scope_placed[self._bucket_of(c)] += 1

    def _rotate(
        self,
        pools: Mapping[str, list[Candidate]],
        has_demand: Callable[[str], bool],
        admissible: Callable[[Candidate], bool],
        on_place: Callable[[Candidate], None] | None = None,
    ) -> int:
        """Fairness loop: the next unit goes to the least-served show with an admissible slot.

        Ties are broken by earliest date, then show id. Admissibility only ever shrinks
        within one pass, so each pool is scanned with a forward-only cursor.
        """

        heads = {k: 0 for k in pools}
        order = sorted(pools)
        placed = 0
        while True:
            best: Candidate | None = None
            best_rank: tuple[int, date, str] | None = None
            for show_key in order:
                if not has_demand(show_key):
                    continue
                pool = pools[show_key]
                i = heads[show_key]
                while i < len(pool) and not admissible(pool[i]):
                    i += 1
                heads[show_key] = i
                if i >= len(pool):
                    continue
                rank = (self.show_counts[show_key], pool[i].air_date, show_key)
                if best_rank is None or rank < best_rank:
                    best, best_rank = pool[i], rank
            if best is None:
                return placed
            self._place(best)
            if on_place is not None:
                on_place(best)
            placed += 1

    # -- tiers -----------------------------------------------------------------------

    def _scope_pool(self, show_key: str, scope: str) -> list[Candidate]:
        if scope == WHOLE_RANGE:
            return self.by_show[show_key]
        return [c for c in self.by_show[show_key] if week_key(c.air_date) == scope]

    def _run_strict(self) -> int:
        total = 0
        for scope, target in self.scope_targets.items():
            pools = {s: self._scope_pool(s, scope) for s in self.show_keys}

            def has_demand(s: str, scope: str = scope, target: int = target) -> bool:
                if self.scope_placed[scope] >= target:
                    return False
                return self.strict_show[(scope, s)] < self.show_share[(scope, s)]

            def admissible(c: Candidate, scope: str = scope) -> bool:
                return self.strict_type[(scope, c.placement_type)] < self.type_cap[scope] and self._open(c)

            def on_place(c: Candidate, scope: str = scope) -> None:
                self.strict_show[(scope, c.show_key)] += 1
                self.strict_type[(scope, c.placement_type)] += 1

            total += self._rotate(pools, has_demand, admissible, on_place)
        return total

    def _run_relaxed(self) -> int:
        pools = {s: self.by_show[s] for s in self.show_keys}

        def admissible(c: Candidate) -> bool:
            return self._open(c) and self._scope_has_room(c)

        return self._rotate(pools, lambda s: self.show_counts[s] < self.show_targets[s], admissible)

    def _run_fill_anywhere(self) -> int:
        pools = {s: self.by_show[s] for s in self.show_keys}
        return self._rotate(pools, lambda _s: self.total_left > 0, self._open)

    # -- conflicts -------------------------------------------------------------------

    def _blame(
        self,
        pool: Iterable[Candidate],
        n: int,
        show_key: str | None,
        blamed: set[Slot],
    ) -> list[PlacementConflict]:
        """One conflict per unit, each pinned to a distinct unused candidate while any remain."""

        out: list[PlacementConflict] = []
        for c in pool:
            if len(out) >= n:
                break
            if c.slot in self.used or c.slot in blamed:
                continue
            blamed.add(c.slot)
            avail = self.availability[c.slot]
            reason = ConflictReason.CAPACITY_EXCEEDED if avail.available else (avail.reason or ConflictReason.SOLD)
            out.append(
                PlacementConflict.for_slot(
                    reason,
                    show_id=c.show_id,
                    air_date=c.air_date,
                    placement_type=c.placement_type,
                    show_name=self.show_names.get(c.show_key),
                    message=avail.message,
                )
            )

        while len(out) < n:
            out.append(
                PlacementConflict.for_slot(
                    ConflictReason.EXHAUSTED,
                    show_id=None if show_key is None else self.show_id_by_key[show_key],
                    show_name=None if show_key is None else self.show_names.get(show_key),
                )
            )
        return out

    def _conflicts(self) -> list[PlacementConflict]:
        if self.total_left <= 0:
            return []

        blamed: set[Slot] = set()
        if self.strategy is FallbackStrategy.FILL_ANYWHERE:
            return self._blame(self.candidates, self.total_left, None, blamed)

        conflicts: list[PlacementConflict] = []
        if self.strategy is FallbackStrategy.RELAXED:
            for s in self.show_keys:
                short = self.show_targets[s] - self.show_counts[s]
                if short > 0:
                    conflicts.extend(self._blame(self.by_show[s], short, s, blamed))
            return conflicts

        # Strict: each scope's unplaced units land on the shows still short of their share.
        for scope, target in self.scope_targets.items():
            left = target - self.scope_placed[scope]
            for s in self.show_keys:
                if left <= 0:
                    break
                short = min(left, self.show_share[(scope, s)] - self.strict_show[(scope, s)])
                if short > 0:
                    conflicts.extend(self._blame(self._scope_pool(s, scope), short, s, blamed))
                    left -= short
        return conflicts

    # -- entry -----------------------------------------------------------------------

    def run(self) -> PlacementPlan:
        placed = {"strict": self._run_strict()}
        if self.strategy.rank >= FallbackStrategy.RELAXED.rank and self.total_left > 0:
            placed["relaxed"] = self._run_relaxed()
        if self.strategy.rank >= FallbackStrategy.FILL_ANYWHERE.rank and self.total_left > 0:
            placed["fill_anywhere"] = self._run_fill_anywhere()

        conflicts = self._conflicts()
        logger.debug(
            "Planned %s/%s units (strategy=%s, per tier=%s, candidates=%s, conflicts=%s)",
            len(self.placements),
            self.requested,
            self.strategy.value,
            placed,
            len(self.candidates),
            len(conflicts),
        )

        return PlacementPlan(
            request=self.request,
            requested=self.requested,
            placements=list(self.placements),
            conflicts=conflicts,
            week_targets=dict(self.week_targets),
            show_targets=dict(self.show_targets),
            placement_type_targets=dict(self.type_targets),
        )


def plan_placements(
    request: PlacementRequest,
    index: AvailabilityIndex,
    rates: RateTable,
    *,
    show_names: Mapping[Any, str] | None = None,
    multi_spot_default: int = 3,
    max_days: int | None = None,
) -> PlacementPlan:
    """Compute which candidates become placements under the request's fallback strategy.

    Pure function of (request, index, rates): no storage access, no side effects.
    Raises InvalidRequest / MissingRateError before doing any planning work.
    """

    request.validate(max_days=max_days)
    rates.ensure_rates(request.show_ids, request.placement_types)
    return _Planner(
        request,
        index,
        rates,
        show_names=show_names,
        multi_spot_default=multi_spot_default,
        max_days=max_days,
    ).run()
