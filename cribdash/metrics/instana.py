"""
Client and helpers for the Instana infrastructure metrics API.

Only the combined-metrics query is used: it returns, for every entity
matching a dynamic focus query, the requested metrics as
[timestamp_ms, value] points over a time window.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("cribdash.instana")

METRICS_PATH = "/api/infrastructure-monitoring/metrics"
SNAPSHOTS_PATH = "/api/infrastructure-monitoring/snapshots"
RATE_LIMIT_HEADER = "X-Ratelimit-Remaining"

_DURATION_UNITS_MS = {
    "ns": 1e-6,
    "us": 1e-3,
    "µs": 1e-3,
    "ms": 1.0,
    "s": 1000.0,
    "m": 60 * 1000.0,
    "h": 60 * 60 * 1000.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

# (upper bound of window/600s, rollup seconds)
_ROLLUPS = [(1, 1), (5, 5), (60, 60), (300, 300), (3600, 3600)]


class MetricsQueryError(Exception):
    """The metrics API rejected a query or returned nothing."""


def to_instana_ts(value: str) -> int:
    """
    Convert 'YYYY-MM-DD HH:MM:SS' (UTC) to epoch milliseconds.

    A bare date means midnight. Raises ValueError on anything else.
    """
    if len(value) == 10:
        value += " 00:00:00"
    parsed = datetime.strptime(value, "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc)
    return int(parsed.timestamp()) * 1000


def parse_duration(value: str) -> int:
    """Parse a duration like '60s', '5m' or '1h30m' into milliseconds."""
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS_MS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return sign * int(total)


def rollup_for_window(window_ms: int) -> int:
    """Smallest rollup (seconds) keeping a window within 600 data points."""
    rollup = window_ms // 1000 // 600
    for bound, seconds in _ROLLUPS:
        if rollup <= bound:
            return seconds
    raise ValueError("rollup is too large for API call, maximum call size is 25 days")


class InfraQueryClient:
    """Async client for combined infrastructure metric queries."""

    def __init__(self, api_url: str, api_token: str, client: Optional[httpx.AsyncClient] = None):
        self.api_url = api_url.rstrip("/")
        # certificates of on-prem backends are frequently self-signed
        self._client = client or httpx.AsyncClient(verify=False)
        self._headers = {"Authorization": f"apiToken {api_token}"}

    async def list_metrics(
        self,
        query: str,
        plugin: str,
        metrics: List[str],
        rollup: int,
        window_size: int,
        to: int,
    ) -> List[Dict[str, Any]]:
        """Return the metric items matching the query. Raises MetricsQueryError."""
        body = {
            "timeFrame": {"windowSize": window_size, "to": to},
            "rollup": rollup,
            "query": query,
            "plugin": plugin,
            "metrics": metrics,
        }
        try:
            response = await self._client.post(self.api_url + METRICS_PATH, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise MetricsQueryError(f"error retrieving metrics: {e}") from e

        if response.status_code >= 400:
            raise MetricsQueryError(f"error in retrieving metrics: {response.text}")

        self._check_rate_limit(response)

        items = response.json().get("items") or []
        if not items:
            raise MetricsQueryError("no metrics found")
        return items

    async def list_snapshots(self, query: str, plugin: str, window_size: int) -> List[Dict[str, Any]]:
        """
        Return the snapshots matching the query over the window ending now.

        An empty result is not an error. Raises MetricsQueryError.
        """
        params = {"query": query, "plugin": plugin, "windowSize": window_size}
        try:
            response = await self._client.get(self.api_url + SNAPSHOTS_PATH, params=params, headers=self._headers)
        except httpx.HTTPError as e:
            raise MetricsQueryError(f"error retrieving snapshots: {e}") from e

        if response.status_code >= 400:
            raise MetricsQueryError(f"error in retrieving snapshots: {response.text}")

        self._check_rate_limit(response)

        return response.json().get("items") or []

    def _check_rate_limit(self, response: httpx.Response):
        raw = response.headers.get(RATE_LIMIT_HEADER)
        try:
            remaining = int(raw)
        except (TypeError, ValueError):
            logger.info("unable to convert remaining rate limit %r", raw)
            return
        if remaining < 25 and remaining % 5 == 0:
            logger.warning("minimal requests remaining: %d", remaining)

    async def aclose(self):
        await self._client.aclose()
