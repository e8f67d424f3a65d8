"""
Background metrics poller feeding the MetricStore.

Every tick queries each configured entity from the infrastructure metrics
API and swaps in a complete new snapshot. An entity whose query fails is
stored as an empty list so its endpoints keep answering.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from cribdash.metrics.instana import InfraQueryClient, MetricsQueryError
from cribdash.metrics.store import MetricStore

logger = logging.getLogger("cribdash.poller")


async def poll_once(
    client: InfraQueryClient,
    store: MetricStore,
    queries: List[Dict[str, Any]],
    rollup: int,
    window_size: int,
    to: Optional[int] = None,
) -> Dict[str, int]:
    """
    Query every entity once and store the new snapshot.

    Returns the number of items fetched per entity.
    """
    if to is None:
        to = int(time.time()) * 1000

    snapshot = {}
    counts = {}
    for q in queries:
        entity = q["entity"]
        try:
            items = await client.list_metrics(
                q["query"],
                q["plugin"],
                list(q["metrics"]),
                rollup,
                window_size,
                to,
            )
        except MetricsQueryError as e:
            logger.warning("Query for %s failed: %s", entity, e)
            items = []
        snapshot[entity] = items
        counts[entity] = len(items)

    store.store(snapshot)
    return counts


async def run_metrics_poller(
    client: InfraQueryClient,
    store: MetricStore,
    queries: List[Dict[str, Any]],
    rollup: int,
    window_size: int,
    interval: float = 1,
    stop_event: Optional[asyncio.Event] = None,
):
    """
    Background task polling the metrics API every `interval` seconds.

    Args:
        client: Metrics API client
        store: Snapshot store read by the data endpoints
        queries: Entity query definitions from config['metric_queries']
        rollup: Rollup in seconds
        window_size: Window size in milliseconds
        interval: Seconds between polls
        stop_event: Event to signal shutdown
    """
    stop = stop_event or asyncio.Event()

    while not stop.is_set():
        try:
            counts = await poll_once(client, store, queries, rollup, window_size)
            logger.debug("Polled metrics: %s", counts)
        except Exception:
            # Don't crash the background task on errors
            logger.exception("Metrics poll failed")

        # Wait for interval or until stopped
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
            break  # stop was set
        except asyncio.TimeoutError:
            pass  # Normal timeout, continue polling
