"""FastAPI dependency injection for the metric store."""

from fastapi import Request

from cribdash.metrics.store import MetricStore


def get_store(request: Request) -> MetricStore:
    """Get the shared metric snapshot store from app state."""
    return request.app.state.store
