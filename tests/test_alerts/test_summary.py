"""Tests for the daily alert summary."""

from __future__ import annotations

from pvehealth.alerts.summary import SUMMARY_KEY, build_alert_summary, send_alert_summary
from pvehealth.alerts.types import Decision
from pvehealth.core.types import Severity, Topic


class TestAlertSummary:
    async def test_lists_alerted_keys(self, make_dispatcher) -> None:
        disp = make_dispatcher()
        await disp.alert_once("swap", Severity.WARNING, "high")
        await disp.alert_once("disk-root", Severity.CRITICAL, "full")
        text = build_alert_summary(disp.store, hostname="pve1", now=disp.store.now())
        assert "Active Alerts: 2" in text
        assert "Host: pve1" in text
        lines = text.splitlines()
        assert lines.index(next(l for l in lines if "disk-root" in l)) < lines.index(
            next(l for l in lines if "swap" in l)
        )
        assert "[disk]" in text

    def test_empty(self, make_dispatcher) -> None:
        text = build_alert_summary(make_dispatcher().store, now=0.0)
        assert "Active Alerts: 0" in text
        assert "No active alerts" in text

    async def test_send(self, make_dispatcher, channel) -> None:
        disp = make_dispatcher()
        await disp.alert_once("mem", Severity.WARNING, "high")
        decision = await send_alert_summary(disp)
        assert decision is Decision.DELIVERED
        summary = channel.sent[-1]
        assert summary.key == SUMMARY_KEY
        assert summary.severity is Severity.INFO
        assert summary.topic is Topic.GENERAL
        assert summary.title == "Daily Alert Summary"
