from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_correlation_id
from api.routes import placements, shows


api_router = APIRouter()

# Every API call gets a correlation id, echoed in logs and placement responses.
_traced = [Depends(get_correlation_id)]
api_router.include_router(placements.router, prefix="/placements", tags=["placements"], dependencies=_traced)
api_router.include_router(shows.router, prefix="/shows", tags=["shows"], dependencies=_traced)
