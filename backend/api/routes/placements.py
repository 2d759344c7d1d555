from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_correlation_id
from core.config import settings
from core.database import get_db
from schemas.placement import (
    BreakdownOut,
    BulkCommitRequest,
    BulkPlacementRequest,
    CommitResponse,
    CommitResultOut,
    ConflictOut,
    PlacementOut,
    PlacementPreviewResponse,
    ScheduledSpotOut,
    SummaryOut,
)
from services.commit_coordinator import commit_placements
from services.placement_service import preview_placements


router = APIRouter()

logger = logging.getLogger(__name__)


def _breakdown(data: dict[str, dict[str, int]]) -> dict[str, BreakdownOut]:
    return {k: BreakdownOut(requested=v["requested"], placed=v["placed"]) for k, v in data.items()}


@router.post("/preview", response_model=PlacementPreviewResponse)
def preview(
    payload: BulkPlacementRequest,
    db: Session = Depends(get_db),
    correlation_id: str = Depends(get_correlation_id),
) -> PlacementPreviewResponse:
    request = payload.to_domain(default_strategy=settings.default_fallback_strategy)
    result = preview_placements(
        db,
        request,
        rate_overrides=payload.rate_overrides,
        conflict_limit=payload.conflict_limit,
    )

    summary = result.summary
    return PlacementPreviewResponse(
        would_place=[PlacementOut.from_domain(p) for p in result.would_place],
        conflicts=[ConflictOut.from_domain(c) for c in result.conflicts],
        conflicts_total=result.conflicts_total,
        summary=SummaryOut(
            requested=summary.requested,
            placeable=summary.placeable,
            unplaceable=summary.unplaceable,
            by_placement_type=_breakdown(summary.by_placement_type),
            by_show=_breakdown(summary.by_show),
            by_week=_breakdown(summary.by_week),
        ),
        correlation_id=correlation_id,
    )


@router.post("/commit", response_model=CommitResponse)
def commit(
    payload: BulkCommitRequest,
    db: Session = Depends(get_db),
    correlation_id: str = Depends(get_correlation_id),
) -> CommitResponse:
    request = payload.to_domain(default_strategy=settings.default_fallback_strategy)
    placements = None if payload.placements is None else [p.to_domain() for p in payload.placements]

    result = commit_placements(
        db,
        request,
        placements,
        payload.idempotency_key,
        rate_overrides=payload.rate_overrides,
        campaign_id=payload.campaign_id,
        correlation_id=correlation_id,
    )
    return CommitResponse(
        success=result.success,
        cached=result.cached,
        result=CommitResultOut(
            spots=[ScheduledSpotOut.from_spot(s) for s in result.spots],
            conflicts=[ConflictOut.from_domain(c) for c in result.conflicts],
            placed=result.placed,
        ),
        message=result.message,
        correlation_id=correlation_id,
    )
