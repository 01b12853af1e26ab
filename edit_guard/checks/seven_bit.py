from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from ..post_hook import CheckResult

logger = logging.getLogger(__name__)

# (category, inclusive codepoint ranges, replacement advice)
CATEGORIES: List[Tuple[str, Tuple[Tuple[int, int], ...], str]] = [
    (
        "Emoji characters",
        ((0x1F600, 0x1F64F), (0x1F300, 0x1F5FF), (0x1F900, 0x1F9FF)),
        "Use text like [OK], [DONE], [WARN], [TODO], [INFO], [ERROR]",
    ),
    (
        "Symbol characters",
        ((0x2600, 0x26FF), (0x2700, 0x27BF)),
        "Use text like [CHECK], [X], [!], [*], [+], [-]",
    ),
    (
        "Arrow characters",
        ((0x2190, 0x21FF), (0x2000, 0x206F)),
        "Use ASCII arrows like ->, <-, ^, v, |",
    ),
    (
        "Box-drawing characters",
        ((0x2500, 0x257F),),
        "Use ASCII art like +---, |, `---",
    ),
]
OTHER = ("Other characters", "Replace with appropriate ASCII text")


def categorize(ch: str) -> str:
    cp = ord(ch)
    for name, ranges, _advice in CATEGORIES:
        if any(lo <= cp <= hi for lo, hi in ranges):
            return name
    return OTHER[0]


def _hex_bytes(ch: str) -> str:
    return " ".join(f"0x{b:02x}" for b in ch.encode("utf-8"))


@dataclass
class NonAsciiReport:
    # (line number, line text, non-ASCII chars on that line)
    lines: List[Tuple[int, str, List[str]]] = field(default_factory=list)
    by_category: Dict[str, List[str]] = field(default_factory=dict)
    total: int = 0


def scan_text(text: str) -> NonAsciiReport:
    report = NonAsciiReport()
    # Only "\n" ends a line, as with grep -n.
    for lineno, raw in enumerate(text.split("\n"), start=1):
        line = raw[:-1] if raw.endswith("\r") else raw
        chars = [c for c in line if ord(c) > 0x7F]
        if not chars:
            continue
        report.lines.append((lineno, line, chars))
        report.total += len(chars)
        for c in chars:
            bucket = report.by_category.setdefault(categorize(c), [])
            if c not in bucket:
                bucket.append(c)
    return report


class SevenBitCheck:
    """Flag non-7-bit ASCII characters (emoji, arrows, box drawing) in text files."""

    check_id = "seven-bit"

    def run(self, path: Path) -> CheckResult:
        result = CheckResult()
        if not path.is_file():
            result.err(f"ERROR: File not found or is not a regular file: '{path}'")
            result.exit_code = 1
            return result

        try:
            data = path.read_bytes()
        except OSError as e:
            result.err(f"ERROR: File not readable: '{path}' ({e})")
            result.exit_code = 1
            return result

        text = None
        if b"\x00" not in data:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                pass
        if text is None:
            result.err(f"INFO: Skipping binary or non-text file: '{path}'")
            return result

        report = scan_text(text)
        if not report.lines:
            return result

        logger.info("event=non_ascii file=%s count=%d", path, report.total)
        result.err(f"ERROR: Non-7-bit ASCII characters detected in '{path}':")
        for lineno, line, chars in report.lines:
            result.err(f"{lineno}:{line}")
            result.err("    Non-ASCII character(s): " + " ".join(f"'{c}' ({_hex_bytes(c)})" for c in chars))
        result.err("")

        result.err("Summary of non-ASCII characters by type:")
        advice = {name: hint for name, _ranges, hint in CATEGORIES}
        advice[OTHER[0]] = OTHER[1]
        for name in [c[0] for c in CATEGORIES] + [OTHER[0]]:
            found = report.by_category.get(name)
            if not found:
                continue
            result.err(f"  {name}: {' '.join(found)}")
            result.err(f"    WARNING: {advice[name]}")
        result.err("")

        result.err(f"Total non-ASCII characters found: {report.total}")
        result.err("Fix required before commit can proceed.")
        result.exit_code = 2
        return result
