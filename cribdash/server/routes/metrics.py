"""Data endpoints consumed by the dashboard widgets."""

import csv
import io
import re

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response

from cribdash.metrics.aggregate import sum_series, to_percentage_heatmap, to_tabular
from cribdash.metrics.store import MetricStore
from cribdash.server.dependencies import get_store
from cribdash.server.models.timeseries import TimeSeriesResponse

router = APIRouter(tags=["metrics"])

METRIC_NAME = re.compile(r"^[a-zA-Z0-9._-]+$")


def _lookup(store: MetricStore, entity: str, metric: str):
    """Return (items, None) or (None, error response)."""
    if not METRIC_NAME.match(metric):
        return None, PlainTextResponse("invalid metric name", status_code=400)
    items = store.items_for(entity)
    if items is None:
        return None, PlainTextResponse("invalid entity name", status_code=400)
    return items, None


@router.get("/heatmap_data")
async def heatmap_data(
    entity: str = Query(""),
    metric: str = Query(""),
    store: MetricStore = Depends(get_store),
):
    """Per-second histogram of a ratio metric as group,variable,value CSV."""
    items, error = _lookup(store, entity, metric)
    if error is not None:
        return error

    table = to_tabular(to_percentage_heatmap(items, metric))
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerows(table)
    return Response(content=buffer.getvalue(), media_type="text/csv")


@router.get("/ts_sum")
async def ts_sum(
    entity: str = Query(""),
    metric: str = Query(""),
    store: MetricStore = Depends(get_store),
):
    """A metric summed across all items of an entity, one value per second."""
    items, error = _lookup(store, entity, metric)
    if error is not None:
        return error
    return TimeSeriesResponse(values=sum_series(items, metric))
