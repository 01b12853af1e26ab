from __future__ import annotations

from pathlib import Path

from edit_guard.existing import ExistingFile


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def numbered_lines(n: int, prefix: str = "line") -> str:
    return "".join(f"{prefix} {i}\n" for i in range(n))


def existing_from_text(text: str, path: str = "/repo/module.py") -> ExistingFile:
    return ExistingFile(path=path, content=text.encode("utf-8"))


def write_file(dirpath: Path, name: str, text: str) -> Path:
    p = dirpath / name
    p.write_text(text, encoding="utf-8")
    return p
