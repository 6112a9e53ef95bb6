"""
Dashboard entry point.

Loads configuration, configures logging, and starts the poller.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from .api import APIError
from .config import load_config
from .poller import DashboardPoller


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
    )


def run() -> None:
    """CLI entry point for the dashboard poller."""
    parser = argparse.ArgumentParser(description="Design Production Tracker dashboard")
    parser.add_argument(
        "-c", "--config",
        default="dashboard.yaml",
        help="Path to configuration file (default: dashboard.yaml)",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("dashboard.config_loaded", config_path=args.config, server=config.server.url)

    poller = DashboardPoller(config)
    try:
        asyncio.run(poller.run_forever())
    except APIError as exc:
        log.error("dashboard.login_failed", error=str(exc))
        sys.exit(2)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
