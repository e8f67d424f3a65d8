"""
Aggregations turning raw metric items into widget-ready data.

A metric item is a dict as returned by the infrastructure metrics API,
with a "metrics" mapping of metric name to [timestamp_ms, value] points.
Points are bucketed by their UTC wall-clock time (HH:MM:SS), so items
from different hosts sampled at the same instant land together.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

PERCENT_BUCKETS = 21

PercentageHeatmap = Dict[str, List[int]]


def time_label(timestamp_ms: float) -> str:
    seconds = int(timestamp_ms / 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%H:%M:%S")


def _points(item: Dict[str, Any], metric: str) -> Iterable:
    return (item.get("metrics") or {}).get(metric) or []


def sum_series(items: List[Dict[str, Any]], metric: str) -> List[float]:
    """Sum every item's points per time bucket, ordered by bucket label."""
    series: Dict[str, float] = {}
    for item in items:
        for point in _points(item, metric):
            label = time_label(point[0])
            series[label] = series.get(label, 0.0) + point[1]
    return [series[label] for label in sorted(series)]


def to_percentage_heatmap(items: List[Dict[str, Any]], metric: str) -> PercentageHeatmap:
    """
    Histogram of ratio values (0..1) per time bucket.

    Bucket 0 only ever holds exact zeros: any positive value lands in at
    least bucket 1, and values >= 1 are capped at the last bucket.
    """
    heatmap: PercentageHeatmap = {}
    for item in items:
        for point in _points(item, metric):
            label = time_label(point[0])
            value = point[1]
            index = int(math.floor(value * PERCENT_BUCKETS))
            if index == 0 and value > 0:
                index = 1
            if index > PERCENT_BUCKETS - 1:
                index = PERCENT_BUCKETS - 1
            hist = heatmap.setdefault(label, [0] * PERCENT_BUCKETS)
            hist[index] += 1
    return heatmap


def bucket_label(index: int) -> str:
    if index == 0:
        return "0%"
    return f"{index * 100 // (PERCENT_BUCKETS - 1)}%"


def to_tabular(heatmap: PercentageHeatmap) -> List[List[str]]:
    """Rows of group,variable,value with a header, groups sorted."""
    table = [["group", "variable", "value"]]
    for label in sorted(heatmap):
        for i, count in enumerate(heatmap[label]):
            table.append([label, bucket_label(i), str(count)])
    return table
