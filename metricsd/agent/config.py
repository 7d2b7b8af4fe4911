"""Agent configuration from command-line flags and environment variables."""

from __future__ import annotations

import argparse
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Sequence

SERVER_ADDRESS_DEFAULT = "localhost:8080"
REPORT_INTERVAL_SECONDS_DEFAULT = 10
POLL_INTERVAL_SECONDS_DEFAULT = 10
RATE_LIMIT_DEFAULT = 100

_INT_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class AgentConfig:
    """Settings of the metrics agent."""

    server_address: str = SERVER_ADDRESS_DEFAULT
    report_interval: timedelta = timedelta(seconds=REPORT_INTERVAL_SECONDS_DEFAULT)
    poll_interval: timedelta = timedelta(seconds=POLL_INTERVAL_SECONDS_DEFAULT)
    key: str = ""
    rate_limit: int = RATE_LIMIT_DEFAULT


def _parse_int(name: str, raw: str) -> int:
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"env: parse error on field {name!r}: invalid integer {raw!r}")
    return int(raw)


def load_agent_config(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> AgentConfig:
    """Build the agent configuration.

    Flags are parsed first; any non-empty environment variable then overrides
    the corresponding value. Raises ValueError for malformed variables.
    """
    env = os.environ if environ is None else environ

    parser = argparse.ArgumentParser(prog="agent", allow_abbrev=False)
    parser.add_argument("-a", dest="server_address", default=SERVER_ADDRESS_DEFAULT,
                        help="server address")
    parser.add_argument("-r", dest="report_interval", type=int,
                        default=REPORT_INTERVAL_SECONDS_DEFAULT,
                        help="report interval (seconds)")
    parser.add_argument("-p", dest="poll_interval", type=int,
                        default=POLL_INTERVAL_SECONDS_DEFAULT,
                        help="poll interval (seconds)")
    parser.add_argument("-k", dest="key", default="", help="hash key")
    parser.add_argument("-l", dest="rate_limit", type=int, default=RATE_LIMIT_DEFAULT,
                        help="rate limit")
    args = parser.parse_args(argv)

    server_address = env.get("ADDRESS") or args.server_address
    key = env.get("KEY") or args.key
    report_interval = args.report_interval
    poll_interval = args.poll_interval
    rate_limit = args.rate_limit

    if env.get("REPORT_INTERVAL"):
        report_interval = _parse_int("REPORT_INTERVAL", env["REPORT_INTERVAL"])
    if env.get("POLL_INTERVAL"):
        poll_interval = _parse_int("POLL_INTERVAL", env["POLL_INTERVAL"])
    if env.get("RATE_LIMIT"):
        rate_limit = _parse_int("RATE_LIMIT", env["RATE_LIMIT"])

    return AgentConfig(
        server_address=server_address,
        report_interval=timedelta(seconds=report_interval),
        poll_interval=timedelta(seconds=poll_interval),
        key=key,
        rate_limit=rate_limit,
    )