"""
Data source for widgets: one HTTP GET per refresh.

Heatmap endpoints answer with CSV (group,variable,value), sparkline
endpoints with JSON {"values": [...]}. Every transport, status or decode
problem surfaces as FetchFailure.
"""

import csv
import io
from typing import Any, Dict, List

import httpx

from cribdash.widgets.errors import FetchFailure


class DataSource:
    """Fetches and decodes widget data through an httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise FetchFailure(url, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise FetchFailure(url, f"HTTP {response.status_code}: {response.text.strip()}")
        return response

    async def fetch_rows(self, url: str) -> List[Dict[str, Any]]:
        """GET a CSV table and return its rows as dicts keyed by header."""
        response = await self._get(url)
        try:
            reader = csv.DictReader(io.StringIO(response.text))
            return list(reader)
        except csv.Error as e:
            raise FetchFailure(url, f"invalid CSV: {e}") from e

    async def fetch_series(self, url: str) -> List[Any]:
        """GET a JSON time series and return its values list."""
        response = await self._get(url)
        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailure(url, f"invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise FetchFailure(url, "expected a JSON object")
        values = payload.get("values")
        if values is None:
            # an empty series encodes as null
            return []
        if not isinstance(values, list):
            raise FetchFailure(url, "'values' is not a list")
        return values

    async def aclose(self):
        await self.client.aclose()
