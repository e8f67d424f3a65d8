"""Health check endpoint."""

import time
from fastapi import APIRouter, Request

from cribdash.server.models.timeseries import HealthResponse, WidgetHealth

router = APIRouter(prefix="/api", tags=["health"])

_start_time = time.time()

VERSION = "0.3.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check: uptime, per-widget status and connected viewers."""
    uptime = int(time.time() - _start_time)
    state = request.app.state

    widgets = [
        WidgetHealth(
            name=w.name,
            kind=w.kind,
            target=w.target,
            status=w.status,
            last_error=w.last_error,
        )
        for w in getattr(state, "widgets", [])
    ]
    manager = getattr(state, "ws_manager", None)

    return HealthResponse(
        status="ok",
        uptime_seconds=uptime,
        websocket_clients=manager.connection_count if manager else 0,
        widgets=widgets,
        version=VERSION,
    )
