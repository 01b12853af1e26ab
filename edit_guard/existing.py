from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import FileUnreadable


@dataclass(frozen=True)
class ExistingFile:
    path: str
    content: bytes
    line_count: int = field(init=False)
    byte_count: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_count", count_lines(self.content))
        object.__setattr__(self, "byte_count", len(self.content))

    def lines(self) -> List[bytes]:
        return split_lines(self.content)


def split_lines(data: bytes) -> List[bytes]:
    # Only "\n" terminates a line; a trailing partial line still counts.
    if not data:
        return []
    parts = data.split(b"\n")
    if parts[-1] == b"":
        parts.pop()
    return parts


def count_lines(data: bytes) -> int:
    if not data:
        return 0
    n = data.count(b"\n")
    return n if data.endswith(b"\n") else n + 1


def read_existing(path: str | Path) -> Optional[ExistingFile]:
    """Read the file an operation targets.

    Returns None when there is no regular file at `path` (the operation
    creates a new file). Raises FileUnreadable when the file exists but
    cannot be read, e.g. it vanished between the check and the read.
    """

    p = Path(path).expanduser()
    if not p.is_file():
        return None
    try:
        data = p.read_bytes()
    except OSError as e:
        raise FileUnreadable(f"Cannot read {p}: {e}") from e
    return ExistingFile(path=str(path), content=data)
