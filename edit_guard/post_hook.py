from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, TextIO

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    exit_code: int = 0
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)

    def out(self, line: str) -> None:
        self.stdout.append(line)

    def err(self, line: str) -> None:
        self.stderr.append(line)


class Check(Protocol):
    """A PostToolUse check run against the file the agent just wrote.

    Exit codes follow the hook protocol: 0 ok, 1 usage/environment error,
    2 blocking feedback for the agent (stderr is shown to it).
    """

    check_id: str

    def run(self, path: Path) -> CheckResult:
        ...


def written_file_path(hook_input: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(hook_input, dict):
        return None
    response = hook_input.get("tool_response")
    if isinstance(response, dict):
        fp = response.get("filePath")
        if isinstance(fp, str) and fp.strip():
            return fp
    return None


def run_post_hook(check: Check, *, stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    try:
        hook_input = json.load(stdin)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        stderr.write(f"ERROR: JSON parsing failed: {e}\n")
        return 1

    file_path = written_file_path(hook_input)
    if file_path is None:
        stderr.write("ERROR: Could not extract 'filePath' from JSON input.\n")
        stderr.write('       Expected JSON format: { "tool_response": { "filePath": "/path/to/file" } }\n')
        return 1

    logger.debug("event=post_check check=%s file=%s", check.check_id, file_path)
    result = check.run(Path(file_path).expanduser())

    for line in result.stdout:
        stdout.write(line + "\n")
    for line in result.stderr:
        stderr.write(line + "\n")

    logger.info("event=post_check_done check=%s file=%s exit=%d", check.check_id, file_path, result.exit_code)
    return result.exit_code
