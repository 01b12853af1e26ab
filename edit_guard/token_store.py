from __future__ import annotations

import itertools
import logging
import os
import re
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Protocol

from .errors import StoreUnwritable

logger = logging.getLogger(__name__)

TOKEN_SUFFIX = ".token"
TMP_PREFIX = ".token.tmp."

_KEY_RE = re.compile(r"^[0-9A-Za-z_-]+$")

Clock = Callable[[], float]


class RetryTokenStore(Protocol):
    """TTL-keyed one-time retry allowances, keyed by proposal fingerprint."""

    ttl_s: int

    def try_consume(self, key: str) -> bool:
        ...

    def issue(self, key: str) -> None:
        ...

    def sweep_expired(self, max_checked: int) -> int:
        ...


@dataclass(frozen=True)
class TokenInfo:
    key: str
    issued_at: int
    age_s: float
    expired: bool


def _check_key(key: str) -> str:
    if not _KEY_RE.match(key or ""):
        raise ValueError(f"Invalid token key: {key!r}")
    return key


class FileTokenStore:
    """One file per live token: `<key>.token` holding the issuance epoch seconds.

    Concurrency notes:
    - issue() writes a fresh temp file in the store directory and os.replace()s
      it into place, so readers see either the old token or the new one.
    - try_consume() is check-then-delete without a lock. Two racing consumers
      may both succeed; a token removed under us reads as absent.
    """

    def __init__(self, directory: str | Path, *, ttl_s: int, clock: Clock = time.time) -> None:
        self.directory = Path(directory).expanduser()
        self.ttl_s = int(ttl_s)
        self._clock = clock
        try:
            self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnwritable(f"Cannot create token store {self.directory}: {e}") from e
        if not os.access(self.directory, os.W_OK | os.X_OK):
            raise StoreUnwritable(f"Token store is not writable: {self.directory}")

    def token_path(self, key: str) -> Path:
        return self.directory / f"{_check_key(key)}{TOKEN_SUFFIX}"

    def _now(self) -> float:
        return self._clock()

    @staticmethod
    def _read_issued_at(path: Path) -> Optional[int]:
        try:
            with path.open("r", encoding="ascii", errors="replace") as f:
                first = f.readline().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug("event=token_read_error path=%s error=%s", path, e)
            return 0
        # Unparseable timestamps read as the epoch, i.e. long expired.
        return int(first) if first.isdigit() else 0

    def _is_live(self, issued_at: int, now: float) -> bool:
        return (now - issued_at) < self.ttl_s

    def try_consume(self, key: str) -> bool:
        path = self.token_path(key)
        issued_at = self._read_issued_at(path)
        if issued_at is None:
            return False

        now = self._now()
        elapsed = now - issued_at
        path.unlink(missing_ok=True)
        if self._is_live(issued_at, now):
            logger.info("event=token_consume result=allow_retry key=%s elapsed_s=%d", key, elapsed)
            return True
        logger.debug("event=token_expired result=deny key=%s elapsed_s=%d", key, elapsed)
        return False

    def issue(self, key: str) -> None:
        path = self.token_path(key)
        now = int(self._now())
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=TMP_PREFIX, dir=str(self.directory))
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(f"{now}\n")
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StoreUnwritable(f"Cannot record retry token in {self.directory}: {e}") from e
        logger.debug("event=token_record key=%s ts=%d token_file=%s", key, now, path)

    def _iter_token_paths(self) -> Iterator[Path]:
        with os.scandir(self.directory) as it:
            for entry in it:
                if entry.name.endswith(TOKEN_SUFFIX) and not entry.name.startswith(TMP_PREFIX):
                    yield Path(entry.path)

    def sweep_expired(self, max_checked: int) -> int:
        """Delete expired tokens, inspecting at most `max_checked` entries."""

        if max_checked <= 0:
            return 0
        now = self._now()
        checked = 0
        removed = 0
        for path in itertools.islice(self._iter_token_paths(), max_checked):
            checked += 1
            issued_at = self._read_issued_at(path)
            if issued_at is None:
                continue
            if not self._is_live(issued_at, now):
                path.unlink(missing_ok=True)
                removed += 1
        logger.debug("event=cleanup checked=%d removed=%d window_s=%d", checked, removed, self.ttl_s)
        return removed

    def list_tokens(self) -> List[TokenInfo]:
        now = self._now()
        out: List[TokenInfo] = []
        for path in self._iter_token_paths():
            issued_at = self._read_issued_at(path)
            if issued_at is None:
                continue
            out.append(
                TokenInfo(
                    key=path.name[: -len(TOKEN_SUFFIX)],
                    issued_at=issued_at,
                    age_s=now - issued_at,
                    expired=not self._is_live(issued_at, now),
                )
            )
        return sorted(out, key=lambda t: t.issued_at)


class MemoryTokenStore:
    """Single-process store: same contract as FileTokenStore, guarded by a lock."""

    def __init__(self, *, ttl_s: int, clock: Clock = time.time) -> None:
        self.ttl_s = int(ttl_s)
        self._clock = clock
        self._tokens: Dict[str, int] = {}
        self._lock = threading.Lock()

    def try_consume(self, key: str) -> bool:
        with self._lock:
            issued_at = self._tokens.pop(key, None)
            if issued_at is None:
                return False
            return (self._clock() - issued_at) < self.ttl_s

    def issue(self, key: str) -> None:
        with self._lock:
            self._tokens[key] = int(self._clock())

    def sweep_expired(self, max_checked: int) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                k
                for k, ts in itertools.islice(self._tokens.items(), max(0, max_checked))
                if (now - ts) >= self.ttl_s
            ]
            for k in expired:
                del self._tokens[k]
            return len(expired)

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, key: str) -> bool:
        return key in self._tokens
