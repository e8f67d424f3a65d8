"""Test fixtures for server tests.

Builds a metric store with known items so the data endpoints have
deterministic output. Timestamps are 2020-04-06 00:00:01/02 UTC.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cribdash.metrics.store import MetricStore
from cribdash.server.app import create_app

T0 = 1586131201000
T1 = T0 + 1000

FILLER_COUNT = "metrics.gauges.com.instana.filler.service.snapshot.OnlineSnapshotsLimit.online-snapshots-count"


def make_config(**overrides):
    """Config with no Instana access and no widgets unless given."""
    config = {
        "instana_url": None,
        "instana_token": None,
        "window": "60s",
        "poll_interval_seconds": 1,
        "metrics_url": None,
        "refresh_interval_ms": 250,
        "default_width": 960,
        "metric_queries": [],
        "widgets": [],
    }
    config.update(overrides)
    return config


@pytest.fixture
def snapshot():
    """Two hosts and two filler instances, two seconds of points each."""
    return {
        "host": [
            {"label": "host-a", "metrics": {
                "cpu.user": [[T0, 0.0], [T1, 0.5]],
                "cpu.sys": [[T0, 0.1], [T1, 0.1]],
            }},
            {"label": "host-b", "metrics": {
                "cpu.user": [[T0, 1.0], [T1, 0.5]],
                "cpu.sys": [[T0, 0.2], [T1, 0.2]],
            }},
        ],
        "filler": [
            {"label": "filler-1", "metrics": {FILLER_COUNT: [[T0, 10.0], [T1, 12.0]]}},
            {"label": "filler-2", "metrics": {FILLER_COUNT: [[T0, 5.0], [T1, 6.0]]}},
        ],
        "appdataWriter": [],
    }


@pytest.fixture
def store(snapshot):
    return MetricStore(snapshot)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def app(config, store):
    """App with the populated store, lifespan not started."""
    app = create_app(config=config)
    app.state.store = store
    return app


@pytest_asyncio.fixture
async def client(app):
    """Create an async test client over the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
