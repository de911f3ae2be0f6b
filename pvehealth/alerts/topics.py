"""Alert key → topic mapping."""

from __future__ import annotations

from fnmatch import fnmatchcase

from pvehealth.core.types import Topic

# First match wins; anything unmatched falls through to GENERAL.
TOPIC_PATTERNS: tuple[tuple[str, Topic], ...] = (
    ("svc-*", Topic.SERVICES),
    ("disk-*", Topic.DISK),
    ("zfs-*", Topic.ZFS),
    ("mem", Topic.MEMORY),
    ("swap", Topic.MEMORY),
    ("load", Topic.LOAD),
    ("iowait", Topic.IOWAIT),
    ("net*", Topic.NETWORK),
    ("br-*", Topic.NETWORK),
    ("iface-*", Topic.INTERFACE_ERRORS),
    ("ssh-*", Topic.SSH),
    ("oom", Topic.SYSTEM_EVENTS),
    ("dup-ip", Topic.SYSTEM_EVENTS),
    ("cpu-temp", Topic.TEMPS),
    ("smart-*", Topic.TEMPS),
    ("temp-*", Topic.TEMPS),
    ("backup-*", Topic.BACKUPS),
    ("updates", Topic.UPDATES),
    ("ct-*", Topic.VMS),
    ("vm-*", Topic.VMS),
    ("automation-*", Topic.AUTOMATION),
)


def topic_for_key(key: str) -> Topic:
    """Return the topic for ``key``. Total: unmatched keys map to GENERAL."""
    for pattern, topic in TOPIC_PATTERNS:
        if fnmatchcase(key, pattern):
            return topic
    return Topic.GENERAL
