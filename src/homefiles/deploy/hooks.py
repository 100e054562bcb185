"""Run ``on_change`` hooks after a generation has been linked."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookResult:
    """Outcome of one ``on_change`` hook invocation."""

    target: str
    command: str
    returncode: int | None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.skipped or (self.returncode == 0 and self.error is None)

    def to_dict(self) -> dict[str, object]:
        return {
            "target": self.target,
            "command": self.command,
            "returncode": self.returncode,
            "error": self.error,
            "skipped": self.skipped,
        }


class HookRunner:
    """Executes hook commands one at a time through the shell."""

    def __init__(self, cwd: Path, dry_run: bool = False):
        self.cwd = cwd
        self.dry_run = dry_run

    def run(self, target: str, command: str) -> HookResult:
        if self.dry_run:
            logger.info("Would run onChange hook for %s", target)
            return HookResult(target, command, None, skipped=True)

        logger.info("Running onChange hook for %s", target)
        env = dict(os.environ, HOMEFILES_TARGET=target)
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self.cwd,
                env=env,
                check=False,
            )
        except OSError as exc:
            logger.error("onChange hook for %s could not run: %s", target, exc)
            return HookResult(target, command, None, error=str(exc))

        if result.returncode != 0:
            logger.error("onChange hook for %s exited with status %d", target, result.returncode)
        return HookResult(target, command, result.returncode)
