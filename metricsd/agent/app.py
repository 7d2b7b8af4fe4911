"""Start-up of the metrics agent."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Sequence

from metricsd.agent.client import ServerClient
from metricsd.agent.collector import MetricsCollector
from metricsd.agent.config import AgentConfig, load_agent_config
from metricsd.agent.sender import MetricsSender
from metricsd.logsetup import new_logger


def _run(config: AgentConfig, stop_event: threading.Event, logger: logging.Logger) -> None:
    collector = MetricsCollector(config.poll_interval, logger)
    gauges, counters = collector.start_collect(stop_event)

    client = ServerClient(config.server_address, config.key, logger)
    sender = MetricsSender(client, config.report_interval, config.rate_limit, logger)

    logger.info("running agent")
    sender.start_send(stop_event, gauges, counters)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the agent until interrupted; returns the process exit status."""
    try:
        config = load_agent_config(argv)
    except ValueError as exc:
        print(f"error creating config: {exc}", file=sys.stderr)
        return 1

    logger = new_logger()
    stop_event = threading.Event()
    try:
        _run(config, stop_event, logger)
    except KeyboardInterrupt:
        logger.info("stopping agent")
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        stop_event.set()
    return 0