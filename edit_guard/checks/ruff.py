from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ..lib.command import CmdResult, have_command, run_cmd
from ..post_hook import CheckResult

logger = logging.getLogger(__name__)


class RuffCheck:
    """Lint (with autofix) and then format Python files the agent wrote."""

    check_id = "ruff"

    def __init__(self, executable: str = "ruff") -> None:
        self.executable = executable

    def _ruff(self, result: CheckResult, *args: str) -> Optional[CmdResult]:
        argv = [self.executable, *args]
        try:
            return run_cmd(argv)
        except subprocess.TimeoutExpired as e:
            result.err(f"ERROR: {' '.join(argv)} timed out after {e.timeout:g}s")
        except OSError as e:
            result.err(f"ERROR: could not run {self.executable}: {e}")
        logger.error("event=ruff_failed argv=%s", argv)
        result.exit_code = 1
        return None

    def run(self, path: Path) -> CheckResult:
        result = CheckResult()
        if not have_command(self.executable):
            result.err(f"{self.executable} not found in PATH")
            result.exit_code = 1
            return result

        if path.suffix != ".py" or not path.is_file():
            return result

        result.out(f"Running ruff on {path}")
        lint = self._ruff(result, "check", "--fix", str(path))
        if lint is None:
            return result
        # The agent only reads stderr, and only on exit code 2.
        for stream in (lint.stdout, lint.stderr):
            if stream.strip():
                result.err(stream.rstrip("\n"))
        if lint.returncode == 1:
            logger.info("event=ruff_findings file=%s", path)
            result.exit_code = 2
            return result
        if lint.returncode != 0:
            result.exit_code = 1
            return result

        fmt = self._ruff(result, "format", str(path))
        if fmt is None:
            return result
        if fmt.returncode != 0:
            result.err(fmt.stderr.rstrip("\n"))
            result.exit_code = 1
            return result
        result.out(f"Ruff formatting complete for {path}")
        return result
