"""
Build context shared by plugins: the checkout path and command execution.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from store.registry import StoreRegistry

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    success: bool
    returncode: int | None
    stdout: str
    stderr: str
    runtime_ms: float
    timed_out: bool = False


class Builder:
    """Runs commands inside one build's working copy."""

    DEFAULT_TIMEOUT_SECONDS: int = 600

    def __init__(
        self,
        build_path: str | Path,
        store_registry: StoreRegistry | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        path = str(build_path)
        self.build_path: str = path if path.endswith(os.sep) else path + os.sep
        self.store_registry: StoreRegistry | None = store_registry
        self.timeout_seconds: int = timeout_seconds or self.DEFAULT_TIMEOUT_SECONDS
        self.last_result: CommandResult | None = None

    @property
    def last_output(self) -> str:
        return self.last_result.stdout if self.last_result is not None else ""

    def log(self, message: str) -> None:
        logger.info(message)

    def run_command(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        timeout_seconds: int | None = None,
    ) -> CommandResult:
        timeout = timeout_seconds or self.timeout_seconds
        logger.debug("Executing: %s", " ".join(args))
        start = time.perf_counter()
        try:
            completed = subprocess.run(
                list(args),
                cwd=str(cwd or self.build_path),
                text=True,
                capture_output=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            runtime_ms = (time.perf_counter() - start) * 1000
            result = CommandResult(
                success=False,
                returncode=None,
                stdout="",
                stderr=f"Timeout after {timeout}s",
                runtime_ms=runtime_ms,
                timed_out=True,
            )
            self.last_result = result
            logger.warning("Command timed out after %ss: %s", timeout, args[0])
            return result
        except OSError as exc:
            runtime_ms = (time.perf_counter() - start) * 1000
            result = CommandResult(False, None, "", str(exc), runtime_ms)
            self.last_result = result
            logger.warning("Command could not start: %s", exc)
            return result

        runtime_ms = (time.perf_counter() - start) * 1000
        result = CommandResult(
            success=completed.returncode == 0,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            runtime_ms=runtime_ms,
        )
        self.last_result = result
        return result

    def execute_command(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        timeout_seconds: int | None = None,
    ) -> bool:
        result = self.run_command(args, cwd=cwd, timeout_seconds=timeout_seconds)
        if result.stdout:
            self.log(result.stdout.rstrip())
        if result.stderr:
            self.log(result.stderr.rstrip())
        return result.success
