"""
Configuration loading for cribdash.

Handles loading configuration from ~/.cribdash/config.json with sensible defaults.
"""

import copy
import json
import os
from pathlib import Path
from typing import Dict, Any, List

from cribdash.models.entities import WidgetSpec, WIDGET_KINDS

# Default configuration mirroring the production dashboard wiring
DEFAULT_CONFIG: Dict[str, Any] = {
    # Instana API access (overridden by INSTANA_URL / INSTANA_TOKEN)
    "instana_url": None,
    "instana_token": None,

    # Metric window and backend polling
    "window": "60s",
    "poll_interval_seconds": 1,

    # Where widgets fetch data from; None means this process
    "metrics_url": None,

    # Widget refresh cadence and fallback container width (px)
    "refresh_interval_ms": 250,
    "default_width": 960,

    # Entities polled from the infrastructure metrics API
    "metric_queries": [
        {
            "entity": "appdataWriter",
            "query": "entity.label:*appdata-writer*",
            "plugin": "dropwizardApplicationContainer",
            "metrics": [
                "metrics.gauges.KPI.incoming.raw_spans.error_rate",
                "metrics.meters.KPI.incoming.raw_spans.calls",
            ],
        },
        {
            "entity": "appdataProcessor",
            "query": "entity.label:*appdata-processor*",
            "plugin": "dropwizardApplicationContainer",
            "metrics": [
                "metrics.gauges.KPI.incoming.span_messages.error_rate",
                "metrics.meters.KPI.incoming.span_messages.calls",
            ],
        },
        {
            "entity": "filler",
            "query": "entity.label:filler*",
            "plugin": "dropwizardApplicationContainer",
            "metrics": [
                "metrics.gauges.KPI.incoming.raw_messages.error_rate",
                "metrics.gauges.com.instana.filler.service.snapshot.OnlineSnapshotsLimit.online-snapshots-count",
            ],
        },
        {
            "entity": "host",
            "query": "entity.type:host AND entity.zone:Instana-*",
            "plugin": "host",
            "metrics": ["cpu.user", "cpu.sys", "cpu.wait"],
        },
    ],

    # Dashboard widgets: one render target each
    "widgets": [
        {
            "name": "filler_spark",
            "kind": "spark",
            "endpoint_template": "/ts_sum?entity={entity}&metric={metric}",
            "target": "sparkFiller",
            "entity": "filler",
            "metric": "metrics.gauges.com.instana.filler.service.snapshot.OnlineSnapshotsLimit.online-snapshots-count",
        },
        {
            "name": "processor_spark",
            "kind": "spark",
            "endpoint_template": "/ts_sum?entity={entity}&metric={metric}",
            "target": "sparkProcessor",
            "entity": "appdataProcessor",
            "metric": "metrics.meters.KPI.incoming.span_messages.calls",
        },
        {
            "name": "writer_spark",
            "kind": "spark",
            "endpoint_template": "/ts_sum?entity={entity}&metric={metric}",
            "target": "sparkWriter",
            "entity": "appdataWriter",
            "metric": "metrics.meters.KPI.incoming.raw_spans.calls",
        },
        {
            "name": "processor_dropping",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_ad_processor_dropping",
            "entity": "appdataProcessor",
            "metric": "metrics.gauges.KPI.incoming.span_messages.error_rate",
        },
        {
            "name": "writer_dropping",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_ad_writer_dropping",
            "entity": "appdataWriter",
            "metric": "metrics.gauges.KPI.incoming.raw_spans.error_rate",
        },
        {
            "name": "cpu_sys",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_cpu_sys",
            "entity": "host",
            "metric": "cpu.sys",
        },
        {
            "name": "cpu_user",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_cpu_user",
            "entity": "host",
            "metric": "cpu.user",
        },
        {
            "name": "cpu_wait",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_cpu_wait",
            "entity": "host",
            "metric": "cpu.wait",
        },
        {
            "name": "filler_dropping",
            "kind": "heatmap",
            "endpoint_template": "/heatmap_data?metric={metric}&entity={entity}",
            "target": "g_filler_dropping",
            "entity": "filler",
            "metric": "metrics.gauges.KPI.incoming.raw_messages.error_rate",
        },
    ],
}

_SCALAR_KEYS = [
    'instana_url', 'instana_token', 'window', 'poll_interval_seconds',
    'metrics_url', 'refresh_interval_ms', 'default_width',
]


def get_config_path() -> Path:
    """Get path to config file."""
    return Path.home() / ".cribdash" / "config.json"


def load_config() -> Dict[str, Any]:
    """
    Load configuration from file, merging with defaults.

    Returns a complete configuration with all default values filled in.
    User config overrides defaults where specified; the environment
    overrides both for the API credentials.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = get_config_path()

    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = json.load(f)

            # Lists are replaced wholesale
            for key in ['metric_queries', 'widgets']:
                if key in user_config and isinstance(user_config[key], list):
                    config[key] = user_config[key]

            # Direct override for simple values
            for key in _SCALAR_KEYS:
                if key in user_config:
                    config[key] = user_config[key]

        except json.JSONDecodeError as e:
            print(f"Warning: Could not parse config file: {e}")
        except Exception as e:
            print(f"Warning: Error loading config: {e}")

    if os.environ.get("INSTANA_URL"):
        config["instana_url"] = os.environ["INSTANA_URL"]
    if os.environ.get("INSTANA_TOKEN"):
        config["instana_token"] = os.environ["INSTANA_TOKEN"]

    return config


def get_widget_specs(config: Dict[str, Any]) -> List[WidgetSpec]:
    """
    Build WidgetSpec entries from the 'widgets' section.

    Raises ValueError for an unknown kind or a missing field.
    """
    specs = []
    for entry in config.get('widgets', []):
        try:
            spec = WidgetSpec(
                name=entry['name'],
                kind=entry['kind'],
                endpoint_template=entry['endpoint_template'],
                target=entry['target'],
                metric=entry.get('metric', ''),
                entity=entry.get('entity', ''),
            )
        except KeyError as e:
            raise ValueError(f"widget entry missing field {e}: {entry!r}") from e

        if spec.kind not in WIDGET_KINDS:
            raise ValueError(f"unknown widget kind '{spec.kind}' for {spec.name}")
        specs.append(spec)
    return specs
