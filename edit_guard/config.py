from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LARGE_EDIT_"

# config key -> environment variable suffix
ENV_KEYS = {
    "threshold": "THRESHOLD",
    "warn_threshold": "WARN_THRESHOLD",
    "min_lines": "MIN_LINES",
    "allow_patterns": "ALLOW_PATTERNS",
    "retry_window": "RETRY_WINDOW",
    "cache_dir": "CACHE_DIR",
    "cleanup_batch": "CLEANUP_BATCH",
    "log_level": "LOG_LEVEL",
    "log_tag": "LOG_TAG",
    "log_path": "LOG_PATH",
    "audit_log": "AUDIT_LOG",
}

DEFAULT_LOG_TAG = "claude.large-edit-guard"


def default_cache_dir(environ: Mapping[str, str]) -> str:
    base = environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return str(Path(base) / "claude" / "hooks" / "large-edit-guard")


def default_config_path(environ: Mapping[str, str]) -> Path:
    base = environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "edit-guard" / "config.yaml"


@dataclass(frozen=True)
class GuardConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _int(self, key: str, default: int) -> int:
        value = self.raw.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer %s=%r (using %d)", key, value, default)
            return default

    @property
    def hard_threshold(self) -> int:
        return self._int("threshold", 50)

    @property
    def soft_threshold(self) -> int:
        return self._int("warn_threshold", 25)

    @property
    def min_lines(self) -> int:
        return self._int("min_lines", 20)

    @property
    def retry_ttl_s(self) -> int:
        return self._int("retry_window", 120)

    @property
    def cleanup_batch(self) -> int:
        return self._int("cleanup_batch", 20)

    @property
    def exclude_patterns(self) -> List[str]:
        value = self.raw.get("allow_patterns") or []
        if isinstance(value, str):
            value = value.split(":")
        return [str(p) for p in value if str(p)]

    @property
    def cache_dir(self) -> str:
        return str(self.raw.get("cache_dir") or default_cache_dir(os.environ))

    @property
    def log_level(self) -> str:
        return str(self.raw.get("log_level") or "off").lower()

    @property
    def log_tag(self) -> str:
        return str(self.raw.get("log_tag") or DEFAULT_LOG_TAG)

    @property
    def log_path(self) -> Optional[str]:
        value = self.raw.get("log_path")
        return str(value) if value else None

    @property
    def audit_log(self) -> Optional[str]:
        value = self.raw.get("audit_log")
        return str(value) if value else None


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")
    return raw


def env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, suffix in ENV_KEYS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None and value != "":
            out[key] = value
    return out


def load_guard_config(
    path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> GuardConfig:
    """Merge defaults, an optional YAML file, and LARGE_EDIT_* variables.

    File lookup order: `path`, then $LARGE_EDIT_CONFIG, then
    $XDG_CONFIG_HOME/edit-guard/config.yaml when it exists. An explicitly
    named file that cannot be loaded raises ConfigError.
    """

    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}

    explicit = path or env.get(ENV_PREFIX + "CONFIG")
    if explicit:
        raw.update(_load_yaml(Path(explicit).expanduser()))
    else:
        implicit = default_config_path(env)
        if implicit.is_file():
            raw.update(_load_yaml(implicit))

    raw.update(env_overrides(env))
    if not raw.get("cache_dir"):
        raw["cache_dir"] = default_cache_dir(env)
    return GuardConfig(raw=raw)
