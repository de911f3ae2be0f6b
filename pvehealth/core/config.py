"""Pydantic settings loaded from layered YAML configuration."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, field_validator

from pvehealth.core.exceptions import ConfigurationError
from pvehealth.core.thresholds import ThresholdPair
from pvehealth.core.types import Severity, Topic

DEFAULT_CONFIG_PATH = Path("/etc/pvehealth/pvehealth.yaml")
CONFIG_ENV_VAR = "PVEHEALTH_CONFIG"
LOCAL_CONFIG_ENV_VAR = "PVEHEALTH_CONFIG_LOCAL"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class PathsConfig(_Frozen):
    """Filesystem locations for state, logs and the run lock."""

    state_dir: Path = Path("/var/lib/pvehealth")
    log_dir: Path = Path("/var/log/pvehealth")
    lock_file: Path = Path("/run/pvehealth/health.lock")


class LoggingConfig(_Frozen):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    file_enabled: bool = True


class QuietHoursConfig(_Frozen):
    """Window during which only CRITICAL notifications are delivered."""

    enabled: bool = False
    start: time = time(22, 0)
    end: time = time(7, 0)

    def is_quiet(self, now: time) -> bool:
        """Whether ``now`` falls inside ``[start, end)``, wrapping midnight."""
        if not self.enabled or self.start == self.end:
            return False
        if self.start < self.end:
            return self.start <= now < self.end
        return now >= self.start or now < self.end


class NotifyConfig(_Frozen):
    """Dispatcher policy: cooldown, retry, filtering and per-topic toggles."""

    cooldown_minutes: float = 30.0
    max_attempts: int = 3
    retry_delay_secs: float = 5.0
    min_level: Severity = Severity.INFO
    quiet_hours: QuietHoursConfig = QuietHoursConfig()
    topics: dict[Topic, bool] = {}
    state_retention_days: int = 30
    hostname: str = ""

    @field_validator("min_level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> Severity:
        return Severity.parse(value)

    @field_validator("max_attempts")
    @classmethod
    def _positive_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    def topic_enabled(self, topic: Topic) -> bool:
        """Topics not listed are enabled."""
        return self.topics.get(topic, True)


class DiscordChannelConfig(_Frozen):
    """Discord webhook channel."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")
    secret_file: Path | None = None
    username: str = "pvehealth"
    timeout_secs: float = 10.0


class WebhookChannelConfig(_Frozen):
    """Generic JSON webhook channel."""

    enabled: bool = False
    url: SecretStr = SecretStr("")
    secret_file: Path | None = None
    headers: dict[str, str] = {}
    timeout_secs: float = 10.0


class EmailChannelConfig(_Frozen):
    """SMTP email channel."""

    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 25
    use_tls: bool = False
    username: str = ""
    password: SecretStr = SecretStr("")
    sender: str = "pvehealth@localhost"
    recipients: list[str] = []
    timeout_secs: float = 15.0


class SyslogChannelConfig(_Frozen):
    """Local syslog channel (via the ``logger`` command)."""

    enabled: bool = True
    tag: str = "pvehealth"
    facility: str = "user"


class ChannelsConfig(_Frozen):
    """Container for all notification channel configurations."""

    discord: DiscordChannelConfig = DiscordChannelConfig()
    webhook: WebhookChannelConfig = WebhookChannelConfig()
    email: EmailChannelConfig = EmailChannelConfig()
    syslog: SyslogChannelConfig = SyslogChannelConfig()


# ── Checks ──────────────────────────────────────────────────────


class ServicesCheckConfig(_Frozen):
    enabled: bool = True
    units: list[str] = [
        "pve-cluster",
        "pvedaemon",
        "pveproxy",
        "pvestatd",
        "pve-firewall",
    ]
    restart: bool = True
    settle_secs: float = 2.0


class DiskCheckConfig(_Frozen):
    enabled: bool = True
    mounts: dict[str, str] = {"root": "/"}
    thresholds: ThresholdPair = ThresholdPair(warning=80, critical=90)


class ZfsCheckConfig(_Frozen):
    enabled: bool = True
    capacity: ThresholdPair = ThresholdPair(warning=80, critical=90)


class MemoryCheckConfig(_Frozen):
    enabled: bool = True
    memory: ThresholdPair = ThresholdPair(warning=85, critical=95)
    swap: ThresholdPair = ThresholdPair(warning=50, critical=80)


class LoadCheckConfig(_Frozen):
    enabled: bool = True
    auto_detect: bool = True
    thresholds: ThresholdPair = ThresholdPair(warning=4, critical=8)


class IowaitCheckConfig(_Frozen):
    enabled: bool = True
    thresholds: ThresholdPair = ThresholdPair(warning=20, critical=40)
    sample_secs: float = 2.0


class NetworkCheckConfig(_Frozen):
    enabled: bool = True
    ping_host: str = "8.8.8.8"
    ping_count: int = 5
    ping_deadline_secs: int = 6
    packet_loss: ThresholdPair = ThresholdPair(warning=10, critical=50)
    bridges: list[str] = ["vmbr0"]


class InterfaceErrorsCheckConfig(_Frozen):
    enabled: bool = True
    delta_threshold: int = 10
    exclude: list[str] = ["lo"]


class SshCheckConfig(_Frozen):
    enabled: bool = True
    failed_login_threshold: int = 10
    connection_threshold: int = 20
    window_minutes: int = 10
    port: int = 22


class SystemEventsCheckConfig(_Frozen):
    enabled: bool = True
    window_minutes: int = 10


class TemperatureCheckConfig(_Frozen):
    enabled: bool = True
    cpu: ThresholdPair = ThresholdPair(warning=75, critical=90)
    hdd: ThresholdPair = ThresholdPair(warning=45, critical=55)
    ssd: ThresholdPair = ThresholdPair(warning=60, critical=70)


class BackupsCheckConfig(_Frozen):
    enabled: bool = True
    vzdump_log_dir: Path = Path("/var/log/vzdump")
    backup_dir: Path = Path("/var/lib/vz/dump")
    max_age_days: int = 2


class UpdatesCheckConfig(_Frozen):
    enabled: bool = True
    interval_hours: float = 24.0
    readonly: bool = True


class GuestsCheckConfig(_Frozen):
    enabled: bool = True


class ChecksConfig(_Frozen):
    """Per-check enable flags and parameters."""

    command_timeout_secs: float = 30.0
    retry_jitter_min_secs: float = 1.0
    retry_jitter_max_secs: float = 3.0
    services: ServicesCheckConfig = ServicesCheckConfig()
    disk: DiskCheckConfig = DiskCheckConfig()
    zfs: ZfsCheckConfig = ZfsCheckConfig()
    memory: MemoryCheckConfig = MemoryCheckConfig()
    load: LoadCheckConfig = LoadCheckConfig()
    iowait: IowaitCheckConfig = IowaitCheckConfig()
    network: NetworkCheckConfig = NetworkCheckConfig()
    interface_errors: InterfaceErrorsCheckConfig = InterfaceErrorsCheckConfig()
    ssh: SshCheckConfig = SshCheckConfig()
    system_events: SystemEventsCheckConfig = SystemEventsCheckConfig()
    temperatures: TemperatureCheckConfig = TemperatureCheckConfig()
    backups: BackupsCheckConfig = BackupsCheckConfig()
    updates: UpdatesCheckConfig = UpdatesCheckConfig()
    guests: GuestsCheckConfig = GuestsCheckConfig()


# ── Automation ──────────────────────────────────────────────────


class DiskCleanupConfig(_Frozen):
    """Age-based deletion across a fixed directory set."""

    enabled: bool = True
    mount: str = "/"
    threshold_pct: float = 95.0
    min_free_gb: float = 5.0
    directories: dict[str, int] = {
        "/tmp": 3,
        "/var/tmp": 7,
        "/var/log": 30,
        "/var/cache/apt/archives": 14,
    }
    rotated_log_dir: str = "/var/log"
    rotated_log_patterns: list[str] = ["*.gz", "*.old", "*.1", "*.2"]
    apt_cache_dir: str = "/var/cache/apt/archives"


class MemoryReliefConfig(_Frozen):
    """Drop page/inode caches under memory pressure."""

    enabled: bool = True
    threshold_pct: float = 90.0
    cache_level: int = 3
    settle_secs: float = 2.0

    @field_validator("cache_level")
    @classmethod
    def _valid_level(cls, value: int) -> int:
        if value not in (1, 2, 3):
            raise ValueError("cache_level must be 1, 2 or 3")
        return value


class ZfsCleanupConfig(_Frozen):
    """Destroy dated auto-snapshots older than the retention window."""

    enabled: bool = True
    retention_days: int = 30
    pattern: str = r"@auto-(\d{4}-\d{2}-\d{2})"


class SystemRefreshConfig(_Frozen):
    """Temp/package-cache/journal cleanup plus service restarts."""

    enabled: bool = True
    age_days: int = 7
    directories: list[str] = ["/tmp", "/var/tmp", "/var/cache/apt/archives"]
    apt_cache_dir: str = "/var/cache/apt/archives"
    journal_dir: str = "/var/log/journal"
    restart_services: list[str] = ["systemd-logind", "systemd-journald", "cron"]


class AutoUpdateConfig(_Frozen):
    """Package index refresh and update application."""

    enabled: bool = True
    security_only: bool = True
    chunk_size: int = 200

    @field_validator("chunk_size")
    @classmethod
    def _positive_chunk(cls, value: int) -> int:
        if value < 1:
            raise ValueError("chunk_size must be at least 1")
        return value


class AutomationConfig(_Frozen):
    """Global automation switch and one section per task."""

    enabled: bool = False
    command_timeout_secs: float = 900.0
    disk_cleanup: DiskCleanupConfig = DiskCleanupConfig()
    memory_relief: MemoryReliefConfig = MemoryReliefConfig()
    zfs_cleanup: ZfsCleanupConfig = ZfsCleanupConfig()
    system_refresh: SystemRefreshConfig = SystemRefreshConfig()
    auto_update: AutoUpdateConfig = AutoUpdateConfig()


class Settings(_Frozen):
    """Root settings container."""

    paths: PathsConfig = PathsConfig()
    logging: LoggingConfig = LoggingConfig()
    notify: NotifyConfig = NotifyConfig()
    channels: ChannelsConfig = ChannelsConfig()
    checks: ChecksConfig = ChecksConfig()
    automation: AutomationConfig = AutomationConfig()


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` on top of ``base`` (neither is mutated)."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return raw


def load_settings(
    path: str | Path | None = None,
    local_path: str | Path | None = None,
) -> Settings:
    """Load settings from the base YAML file plus its local override.

    Args:
        path: Base config. Defaults to ``$PVEHEALTH_CONFIG`` or
            /etc/pvehealth/pvehealth.yaml.
        local_path: Override layer. Defaults to ``$PVEHEALTH_CONFIG_LOCAL`` or
            ``<base stem>.local.yaml`` next to the base file.

    Returns:
        Parsed, frozen Settings instance.

    Raises:
        ConfigurationError: A layer is unreadable or validation failed.
    """
    base_path = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if local_path is None:
        env_local = os.environ.get(LOCAL_CONFIG_ENV_VAR)
        local = Path(env_local) if env_local else base_path.with_suffix(".local.yaml")
    else:
        local = Path(local_path)

    data = deep_merge(_read_layer(base_path), _read_layer(local))
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc
