"""System command executor — the single seam through which we shell out."""

from __future__ import annotations

import asyncio
import os
import shutil
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

import structlog

from pvehealth.core.exceptions import CommandNotFoundError, CommandTimeoutError
from pvehealth.core.types import CommandResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECS = 30.0


class CommandExecutor(ABC):
    """Abstract command runner; tests substitute a recording fake."""

    @abstractmethod
    async def run(
        self,
        argv: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT_SECS,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run ``argv`` to completion and capture its output.

        Raises:
            CommandNotFoundError: The binary is not installed.
            CommandTimeoutError: The command exceeded ``timeout``.
        """

    @abstractmethod
    def which(self, name: str) -> str | None:
        """Return the resolved path of ``name``, or None if not installed."""

    def has(self, name: str) -> bool:
        return self.which(name) is not None


class SubprocessExecutor(CommandExecutor):
    """Runs commands with asyncio subprocesses and a hard timeout."""

    async def run(
        self,
        argv: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT_SECS,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        args = list(argv)
        full_env = {**os.environ, **env} if env else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=full_env,
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(f"command not found: {args[0]}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            logger.warning("command_timeout", argv=args, timeout=timeout)
            raise CommandTimeoutError(
                f"{args[0]} timed out after {timeout:.0f}s"
            ) from exc

        result = CommandResult(
            argv=args,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        logger.debug("command_completed", argv=args, returncode=result.returncode)
        return result

    def which(self, name: str) -> str | None:
        return shutil.which(name)
