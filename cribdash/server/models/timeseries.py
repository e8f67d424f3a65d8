"""Pydantic models for the metrics data API."""

from typing import List, Optional

from pydantic import BaseModel


class TimeSeriesResponse(BaseModel):
    values: List[float]


class WidgetHealth(BaseModel):
    name: str
    kind: str
    target: str
    status: str
    last_error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: int
    websocket_clients: int
    widgets: List[WidgetHealth]
    version: str
