"""Metrics package - backend polling client, aggregations and snapshot store."""

from .aggregate import sum_series, to_percentage_heatmap, to_tabular, PERCENT_BUCKETS
from .instana import (
    InfraQueryClient,
    MetricsQueryError,
    to_instana_ts,
    parse_duration,
    rollup_for_window,
)
from .store import MetricStore

__all__ = [
    "sum_series",
    "to_percentage_heatmap",
    "to_tabular",
    "PERCENT_BUCKETS",
    "InfraQueryClient",
    "MetricsQueryError",
    "to_instana_ts",
    "parse_duration",
    "rollup_for_window",
    "MetricStore",
]
