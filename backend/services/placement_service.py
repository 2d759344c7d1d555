from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from core.config import settings
from placement.planner import plan_placements
from placement.report import PlacementPreview, build_preview, reason_counts, severity_counts
from placement.types import PlacementRequest
from services.inventory import build_rate_table, load_availability_index, load_shows


logger = logging.getLogger(__name__)


def preview_placements(
    db: Session,
    request: PlacementRequest,
    *,
    rate_overrides: Mapping[Any, Mapping[str, float]] | None = None,
    conflict_limit: int | None = None,
) -> PlacementPreview:
    """Dry run: plan against a fresh snapshot and aggregate. Never writes."""

    request.validate(max_days=settings.max_planning_days)
    shows = load_shows(db, request.show_ids)
    rates = build_rate_table(shows, rate_overrides)
    index = load_availability_index(db, show_ids=request.show_ids, start=request.start, end=request.end)

    plan = plan_placements(
        request,
        index,
        rates,
        show_names={s.id: s.name for s in shows},
        multi_spot_default=settings.multi_spot_default_cap,
        max_days=settings.max_planning_days,
    )

    limit = settings.conflict_display_limit if conflict_limit is None else conflict_limit
    preview = build_preview(plan, conflict_limit=limit)
    logger.info(
        "Preview: requested=%s placeable=%s conflicts=%s %s severity=%s",
        plan.requested,
        plan.placeable,
        len(plan.conflicts),
        reason_counts(plan.conflicts),
        severity_counts(plan.conflicts),
    )
    return preview
