#!/usr/bin/env python3
"""Health-check entrypoint — one pass over every enabled check.

Meant to be driven by a systemd timer or cron.

Usage::

    python scripts/healthcheck.py
    python scripts/healthcheck.py --config /etc/pvehealth/pvehealth.yaml
    python scripts/healthcheck.py --summary
"""

from __future__ import annotations

import argparse
import sys

from pvehealth import agent
from pvehealth.core.exceptions import ConfigurationError

# Exit status is the issue count; 126 and up are reserved by the shell.
MAX_EXIT_STATUS = 125


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run host health checks once.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: $PVEHEALTH_CONFIG or /etc/pvehealth/pvehealth.yaml)",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Send the active-alert summary instead of running checks",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        if args.summary:
            decision = agent.send_alert_summary(config_path=args.config)
            print(f"Summary: {decision.value}")
            return 0
        issues = agent.run_all_health_checks(config_path=args.config)
    except ConfigurationError as exc:
        return agent.report_configuration_error(exc)

    print(f"Health checks completed: {issues} issue(s)")
    return min(issues, MAX_EXIT_STATUS)


if __name__ == "__main__":
    sys.exit(main())
