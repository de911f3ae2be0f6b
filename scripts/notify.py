#!/usr/bin/env python3
"""Send a one-off notification through the configured channels.

Usage::

    python scripts/notify.py "Backup rotated" --severity info --topic backups
"""

from __future__ import annotations

import argparse
import sys

from pvehealth import agent
from pvehealth.alerts.types import Decision
from pvehealth.core.exceptions import ConfigurationError
from pvehealth.core.types import Severity, Topic


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a manual notification.")
    parser.add_argument("message", help="Notification text; the first line is the title")
    parser.add_argument(
        "--severity",
        default="info",
        choices=[s.name.lower() for s in Severity],
        help="Severity tier (default: info)",
    )
    parser.add_argument(
        "--topic",
        default=Topic.GENERAL.value,
        choices=[t.value for t in Topic],
        help="Topic used for per-topic filtering (default: general)",
    )
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        decision = agent.send_manual_notification(
            args.message, args.severity, args.topic, config_path=args.config
        )
    except ConfigurationError as exc:
        return agent.report_configuration_error(exc)

    print(decision.value)
    return 1 if decision is Decision.DELIVERY_FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
