from __future__ import annotations

import uuid

from fastapi import Request

from core.logging import set_correlation_id


CORRELATION_HEADER = "X-Correlation-Id"


async def get_correlation_id(request: Request) -> str:
    cached = getattr(request.state, "correlation_id", None)
    if isinstance(cached, str):
        return cached

    correlation_id = (request.headers.get(CORRELATION_HEADER) or "").strip()[:128] or str(uuid.uuid4())
    # Set on the event loop; the sync endpoint thread inherits this context.
    set_correlation_id(correlation_id)
    request.state.correlation_id = correlation_id
    return correlation_id
