"""Tests for SubprocessExecutor — output capture, missing binaries, timeouts."""

from __future__ import annotations

import sys

import pytest

from pvehealth.core.exceptions import CommandNotFoundError, CommandTimeoutError
from pvehealth.core.executor import SubprocessExecutor


class TestSubprocessExecutor:
    async def test_captures_output(self) -> None:
        result = await SubprocessExecutor().run(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"]
        )
        assert result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    async def test_nonzero_exit(self) -> None:
        result = await SubprocessExecutor().run([sys.executable, "-c", "raise SystemExit(3)"])
        assert not result.ok
        assert result.returncode == 3

    async def test_env_is_merged(self) -> None:
        result = await SubprocessExecutor().run(
            [sys.executable, "-c", "import os; print(os.environ['PVEHEALTH_TEST'])"],
            env={"PVEHEALTH_TEST": "yes"},
        )
        assert result.stdout.strip() == "yes"

    async def test_missing_binary(self) -> None:
        with pytest.raises(CommandNotFoundError):
            await SubprocessExecutor().run(["definitely-not-a-real-binary-xyz"])

    async def test_timeout_kills(self) -> None:
        with pytest.raises(CommandTimeoutError):
            await SubprocessExecutor().run(
                [sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2
            )

    def test_which(self) -> None:
        ex = SubprocessExecutor()
        assert ex.has("sh")
        assert ex.which("definitely-not-a-real-binary-xyz") is None
