"""Command executor backed by local shell subprocesses."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from lifeboat.errors import CommandExecutionError, CommandTimeoutError

logger = logging.getLogger(__name__)


class ShellCommandExecutor:
    """Runs recovery commands with ``/bin/sh``.

    Returns decoded stdout. A non-zero exit raises CommandExecutionError with
    the tail of stderr; exceeding ``timeout_ms`` kills the process and raises
    CommandTimeoutError.
    """

    def __init__(
        self,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        max_output_bytes: int = 1_000_000,
    ) -> None:
        self.cwd = str(cwd) if cwd is not None else None
        self.env = {**os.environ, **env} if env else None
        self.max_output_bytes = max_output_bytes

    async def execute(self, command: str, timeout_ms: int) -> str:
        logger.debug("Running command (timeout=%dms): %s", timeout_ms, command)
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
            env=self.env,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandTimeoutError(command, timeout_ms) from None

        if len(stdout) > self.max_output_bytes:
            stdout = stdout[: self.max_output_bytes] + b"\n[OUTPUT TRUNCATED]"

        if proc.returncode != 0:
            detail = f"exit code {proc.returncode}"
            err_tail = stderr.decode("utf-8", errors="replace").strip()[-500:]
            if err_tail:
                detail = f"{detail}: {err_tail}"
            raise CommandExecutionError(command, detail, exit_code=proc.returncode)

        return stdout.decode("utf-8", errors="replace")
