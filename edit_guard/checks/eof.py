from __future__ import annotations

import logging
from pathlib import Path

from ..post_hook import CheckResult

logger = logging.getLogger(__name__)

# Files not already owned by a formatter.
TEXT_SUFFIXES = frozenset({".sh", ".md", ".txt", ".json", ".toml", ".yaml", ".ini"})


class EofNewlineCheck:
    """Make sure plain text files end with a newline."""

    check_id = "eof"

    def run(self, path: Path) -> CheckResult:
        result = CheckResult()
        if path.suffix.lower() not in TEXT_SUFFIXES or not path.is_file():
            return result

        try:
            data = path.read_bytes()
            if not data or data.endswith(b"\n"):
                return result
            with path.open("ab") as f:
                f.write(b"\n")
        except OSError as e:
            logger.error("event=eof_fix_failed file=%s error=%s", path, e)
            result.err(f"ERROR: Could not add end-of-file newline to '{path}' ({e})")
            result.exit_code = 1
            return result

        logger.info("Added trailing newline to %s", path)
        result.out(f"Added missing end-of-file newline to {path}")
        return result
