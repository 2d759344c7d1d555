from __future__ import annotations

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from models.show import Show
from placement.types import PLACEMENT_TYPES
from schemas.placement import AvailabilityDayOut, ShowAvailabilityResponse
from services.inventory import describe_show_availability


router = APIRouter()


@router.get("/{show_id}/availability", response_model=ShowAvailabilityResponse)
def get_show_availability(
    show_id: uuid.UUID,
    start: dt.date = Query(...),
    end: dt.date = Query(...),
    placement_type: str | None = Query(default=None, alias="placementType"),
    db: Session = Depends(get_db),
) -> ShowAvailabilityResponse:
    if start > end:
        raise HTTPException(status_code=400, detail="INVALID_DATE_RANGE")
    if (end - start).days + 1 > settings.max_planning_days:
        raise HTTPException(status_code=400, detail="DATE_RANGE_TOO_LONG")
    if placement_type is not None and placement_type not in PLACEMENT_TYPES:
        raise HTTPException(status_code=400, detail="INVALID_PLACEMENT_TYPE")

    show = db.get(Show, show_id)
    if show is None:
        raise HTTPException(status_code=404, detail="SHOW_NOT_FOUND")

    rows = describe_show_availability(db, show=show, start=start, end=end, placement_type=placement_type)
    return ShowAvailabilityResponse(
        show_id=show.id,
        show_name=show.name,
        start=start,
        end=end,
        days=[
            AvailabilityDayOut(
                air_date=r["date"],
                episode_id=r["episode_id"],
                episode_title=r["episode_title"],
                episode_number=r["episode_number"],
                slots=r["slots"],
            )
            for r in rows
        ],
    )
