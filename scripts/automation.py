#!/usr/bin/env python3
"""Automation CLI — run one remediation task.

Usage::

    python scripts/automation.py disk-cleanup --dry-run
    python scripts/automation.py zfs-cleanup --param retention_days=14
    python scripts/automation.py --list
"""

from __future__ import annotations

import argparse
import sys

import yaml

from pvehealth import agent
from pvehealth.alerts.formatters import format_automation_result
from pvehealth.automation.engine import TASKS
from pvehealth.core.exceptions import ConfigurationError, UnknownTaskError


def parse_param(raw: str) -> tuple[str, object]:
    """``key=value`` with the value parsed as a YAML scalar."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    return key.strip(), yaml.safe_load(value)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run an automation task once.")
    parser.add_argument("task", nargs="?", help=f"Task name ({', '.join(sorted(TASKS))})")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be done without changing anything",
    )
    parser.add_argument(
        "--param",
        action="append",
        type=parse_param,
        default=[],
        metavar="KEY=VALUE",
        help="Override a task setting (repeatable)",
    )
    parser.add_argument("--list", action="store_true", help="List available tasks")
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.list or not args.task:
        for name in sorted(TASKS):
            print(name)
        return 0 if args.list else 2

    try:
        result = agent.run_automation_task(
            args.task,
            dry_run=args.dry_run,
            params=dict(args.param) or None,
            config_path=args.config,
        )
    except UnknownTaskError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except ConfigurationError as exc:
        return agent.report_configuration_error(exc)

    print(format_automation_result(result))
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
