from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditLogger:
    """Append-only JSONL trail of guard decisions."""

    path: Path

    @classmethod
    def from_config(cls, audit_log: Optional[str]) -> Optional["AuditLogger"]:
        if not audit_log:
            return None
        return cls(path=Path(audit_log).expanduser())

    def log(self, event: Dict[str, Any]) -> None:
        event = dict(event)
        event.setdefault("ts", time.time())
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event, sort_keys=True) + "\n")
        except OSError as e:
            # Advisory only.
            logger.error("event=audit_write_failed path=%s error=%s", self.path, e)


def audit_event(
    *,
    action: str,
    ok: bool,
    details: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    e: Dict[str, Any] = {"action": action, "ok": ok}
    if details:
        e["details"] = details
    if error:
        e["error"] = error
    return e
