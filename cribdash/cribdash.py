#!/usr/bin/env python3
"""
cribdash - live infrastructure heatmaps and sparklines.

Polls the Instana infrastructure metrics API and serves a dashboard whose
widgets refresh on a fixed cadence and on viewer resizes.

Usage:
    python -m cribdash.cribdash [options]
    cribdash [options]
    cribdash --query-metrics [--metric NAME] [--query QUERY] [--plugin TYPE]
"""

import argparse
import asyncio
import logging
import sys
import time

from cribdash.config.loader import load_config
from cribdash.metrics.instana import InfraQueryClient, MetricsQueryError, parse_duration, rollup_for_window

logger = logging.getLogger("cribdash.query")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all CLI flags."""
    parser = argparse.ArgumentParser(
        prog='cribdash',
        description='Live infrastructure metrics dashboard'
    )

    parser.add_argument('--window', metavar='DURATION',
                       help='Metric window size (valid time units are "s", "m", "h")')
    parser.add_argument('--interval', type=int, metavar='MS',
                       help='Widget refresh interval in milliseconds')
    parser.add_argument('--metrics-url', metavar='URL',
                       help='Fetch widget data from another cribdash backend')
    parser.add_argument('--no-poll', action='store_true',
                       help='Serve without polling the metrics API')

    parser.add_argument('--query-metrics', action='store_true',
                       help='Run one metrics and snapshot query against the API and exit')
    parser.add_argument('--metric', default='cpu.user',
                       help='Metric name to extract (default: cpu.user)')
    parser.add_argument('--query', default='entity.zone:us-east-2',
                       help='Infrastructure query used by --query-metrics')
    parser.add_argument('--plugin', default='host',
                       help='Snapshot plugin type (default: host)')

    parser.add_argument('--port', type=int, default=8000,
                       help='Port for web dashboard (default: 8000)')
    parser.add_argument('--host', default='0.0.0.0',
                       help='Host to bind (default: 0.0.0.0)')
    parser.add_argument('--verbose', '-v', action='store_true',
                       help='Debug logging')

    return parser


def apply_args(config: dict, args) -> dict:
    """Overlay command line options on the loaded config."""
    if args.window:
        config['window'] = args.window
    if args.interval:
        config['refresh_interval_ms'] = args.interval
    if args.metrics_url:
        config['metrics_url'] = args.metrics_url
    if args.no_poll:
        config['instana_url'] = None
        config['instana_token'] = None
    return config


def check_config(config: dict, polling: bool) -> list:
    """Return a list of fatal configuration problems."""
    problems = []
    try:
        rollup_for_window(parse_duration(config['window']))
    except ValueError as e:
        problems.append(f"invalid window '{config['window']}': {e}")

    if polling:
        if not config.get('instana_token'):
            problems.append("INSTANA_TOKEN environment variable should be set to the Instana API token.")
        if not config.get('instana_url'):
            problems.append("INSTANA_URL environment variable should be set to the Instana API end-point.")
    return problems


def main(argv=None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = apply_args(load_config(), args)

    polling = args.query_metrics or (not args.no_poll and not config.get('metrics_url'))
    problems = check_config(config, polling)
    if problems:
        for problem in problems:
            print(f"Error: {problem}", file=sys.stderr)
        sys.exit(1)

    if args.query_metrics:
        _run_query(config, args)
        return

    _run_serve(config, args)


async def query_counts(client, query: str, plugin: str, metric: str, rollup: int, window_size: int):
    """Fetch metrics and snapshots for one query. Returns (metrics, snapshots) counts."""
    to = int(time.time()) * 1000
    try:
        metrics = await client.list_metrics(query, plugin, [metric], rollup, window_size, to)
        snapshots = await client.list_snapshots(query, plugin, window_size)
    finally:
        await client.aclose()
    return len(metrics), len(snapshots)


def _run_query(config, args):
    """Log the query settings, run it once and log the result counts."""
    window_size = parse_duration(config['window'])
    rollup = rollup_for_window(window_size)

    logger.info("API Key Set: %s", bool(config.get('instana_token')))
    logger.info("API URL:     %s", config.get('instana_url'))
    logger.info("Metric:      %s", args.metric)
    logger.info("Query:       %s", args.query)
    logger.info("Rollup:      %ds", rollup)
    logger.info("Window Size: %s", config['window'])

    client = InfraQueryClient(config['instana_url'], config['instana_token'])
    try:
        metrics, snapshots = asyncio.run(
            query_counts(client, args.query, args.plugin, args.metric, rollup, window_size)
        )
    except MetricsQueryError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Metrics:     %d", metrics)
    logger.info("Snapshots:   %d", snapshots)


def _run_serve(config, args):
    """Start the web dashboard server."""
    try:
        import uvicorn
    except ImportError:
        print("Error: Web dashboard requires additional dependencies.")
        print("Install them with: python -m pip install fastapi uvicorn[standard] httpx pydantic")
        sys.exit(1)

    from cribdash.server.app import create_app
    app = create_app(config=config)

    url = f"http://{args.host}:{args.port}"
    print(f"\nStarting cribdash at {url}")
    if config.get('instana_url'):
        print(f"Metrics API: {config['instana_url']} (window {config['window']})")
    print("Press Ctrl+C to stop\n")

    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.verbose else "info")


if __name__ == '__main__':
    main()
