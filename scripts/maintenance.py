#!/usr/bin/env python3
"""Maintenance-mode CLI.

Usage::

    python scripts/maintenance.py enable 2h --reason "kernel upgrade"
    python scripts/maintenance.py enable 0        # until disabled
    python scripts/maintenance.py disable
    python scripts/maintenance.py status
"""

from __future__ import annotations

import argparse
import sys

from pvehealth import agent
from pvehealth.alerts.formatters import format_timestamp
from pvehealth.core.exceptions import ConfigurationError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enable, disable or inspect maintenance mode.")
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    sub = parser.add_subparsers(dest="command", required=True)

    enable = sub.add_parser("enable", help="Suppress all notifications for a while")
    enable.add_argument(
        "duration",
        nargs="?",
        default="1h",
        help="Minutes or compound duration like 1h30m; 0 = until disabled (default: 1h)",
    )
    enable.add_argument("--reason", default="Scheduled maintenance")

    sub.add_parser("disable", help="End maintenance mode")
    sub.add_parser("status", help="Exit 0 if maintenance is active, 1 otherwise")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        if args.command == "enable":
            try:
                expires_at = agent.enable_maintenance(args.duration, args.reason, config_path=args.config)
            except ValueError as exc:
                print(f"Invalid duration: {exc}", file=sys.stderr)
                return 2
            until = "until disabled" if expires_at is None else f"until {format_timestamp(expires_at)}"
            print(f"Maintenance mode enabled {until}")
            return 0
        if args.command == "disable":
            existed = agent.disable_maintenance(config_path=args.config)
            print("Maintenance mode disabled" if existed else "Maintenance mode was not active")
            return 0
        active = agent.is_maintenance_active(config_path=args.config)
    except ConfigurationError as exc:
        return agent.report_configuration_error(exc)

    print("active" if active else "inactive")
    return 0 if active else 1


if __name__ == "__main__":
    sys.exit(main())
