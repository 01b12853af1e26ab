from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from .config import DEFAULT_LOG_TAG

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

SYSLOG_SOCKETS = ("/dev/log", "/var/run/syslog")

PACKAGE_LOGGER = "edit_guard"


def _syslog_handler(tag: str) -> Optional[logging.Handler]:
    for sock in SYSLOG_SOCKETS:
        if not os.path.exists(sock):
            continue
        try:
            handler = logging.handlers.SysLogHandler(
                address=sock, facility=logging.handlers.SysLogHandler.LOG_USER
            )
        except OSError:
            continue
        handler.ident = f"{tag}: "
        return handler
    return None


def configure_logging(
    level_name: str = "off",
    *,
    tag: str = DEFAULT_LOG_TAG,
    log_path: Optional[str] = None,
    fallback_dir: Optional[str] = None,
) -> Optional[str]:
    """Configure the package logger for a single hook invocation.

    Notes:
    - Hooks talk to the agent over stdout/stderr, so logs never go there.
    - `off` (the default) leaves the logger silent.
    - Without `log_path`, records go to syslog under `tag`. If no syslog
      socket is available we fall back to a file in `fallback_dir`
      (or the working directory).

    Returns a description of the destination, or None when logging is off.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)

    if getattr(logger, "_edit_guard_configured", False):
        return getattr(logger, "_edit_guard_destination", None)

    level = LEVELS.get((level_name or "off").lower())
    if level is None:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        logger.propagate = False
        setattr(logger, "_edit_guard_configured", True)
        setattr(logger, "_edit_guard_destination", None)
        return None

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    handler: Optional[logging.Handler] = None
    destination: Optional[str] = None

    if not log_path:
        handler = _syslog_handler(tag)
        if handler is not None:
            handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
            destination = f"syslog:{tag}"

    if handler is None:
        path = log_path or str(Path(fallback_dir or Path.cwd()) / "large-edit-guard.log")
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8")
        except OSError:
            handler = logging.NullHandler()
            path = None
        handler.setFormatter(fmt)
        destination = path

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    setattr(logger, "_edit_guard_configured", True)
    setattr(logger, "_edit_guard_destination", destination)

    logger.debug("Logging initialized (level=%s, destination=%s)", level_name, destination)
    return destination
