from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Optional, Sequence

from .config import GuardConfig
from .errors import InvalidInput, StoreUnwritable
from .estimate import estimate
from .existing import ExistingFile, count_lines
from .fingerprint import fingerprint
from .operation import FullRewrite, MultiRegionReplace, Operation, SingleRegionReplace
from .token_store import RetryTokenStore

logger = logging.getLogger(__name__)

HEADER_TAG = "LARGE_EDIT_GUARD v1"


class Verdict(str, enum.Enum):
    ALLOW = "allow"
    WARN = "warn"
    DENY = "deny"


@dataclass(frozen=True)
class Decision:
    verdict: Verdict
    percent: int = 0
    message: str = ""
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.verdict is not Verdict.DENY


def allow(reason: str, percent: int = 0, message: str = "") -> Decision:
    return Decision(verdict=Verdict.ALLOW, percent=percent, message=message, reason=reason)


def matching_exclusion(path: str, patterns: Sequence[str]) -> Optional[str]:
    """Return the first glob in `patterns` matching `path` (`*` also matches `/`)."""

    for pattern in patterns:
        if fnmatchcase(path, pattern):
            return pattern
    return None


def describe_change(existing: ExistingFile, op: Operation, percent: int) -> str:
    lines = [f"File: {existing.path}"]
    if isinstance(op, FullRewrite):
        lines += [
            f"Existing size: {existing.line_count} lines, {existing.byte_count} bytes",
            f"New size: {count_lines(op.content)} lines, {len(op.content)} bytes",
            f"Estimated change: {percent}%",
        ]
    elif isinstance(op, SingleRegionReplace):
        lines += [
            f"Replacing: {count_lines(op.old)} lines ({len(op.old)} bytes)",
            f"Percentage of file: {percent}%",
        ]
    elif isinstance(op, MultiRegionReplace):
        lines += [
            f"Number of edits: {len(op.edits)}",
            f"Total bytes being replaced: {sum(len(old) for old, _new in op.edits)}",
            f"Percentage of file: {percent}%",
        ]
    return "\n".join(lines)


def blocked_header(op: Operation, percent: int, threshold: int, retry_window_s: int) -> str:
    return (
        f"{HEADER_TAG} action=blocked stage=first_attempt tool={op.tool_name} "
        f"percent={percent} threshold={threshold} retry_window_s={retry_window_s} "
        f"file={op.target_path}"
    )


def _deny_message(
    existing: ExistingFile,
    op: Operation,
    percent: int,
    config: GuardConfig,
    *,
    retry_window_s: int,
) -> str:
    threshold = config.hard_threshold
    if retry_window_s > 0:
        retry_hint = (
            "- If the large change is truly necessary, retry the SAME operation now "
            f"(within {retry_window_s}s).\n"
            "  The retry will be allowed to proceed to the normal user permission prompt."
        )
    else:
        retry_hint = (
            "- Retry tokens are unavailable (token store is not writable), so retrying will be blocked again.\n"
            "  Split the change into smaller edits, or exclude this path via LARGE_EDIT_ALLOW_PATTERNS."
        )
    return (
        f"{blocked_header(op, percent, threshold, retry_window_s)}\n"
        "\n"
        f"[LARGE EDIT WARNING] ~{percent}% of file would be modified (threshold: {threshold}%)\n"
        "\n"
        f"{describe_change(existing, op, percent)}\n"
        "\n"
        "GUIDANCE:\n"
        "- Try to make the change smaller and more targeted.\n"
        "- If a smaller change is possible, do that instead.\n"
        f"{retry_hint}"
    )


def warn_message(op: Operation, percent: int) -> str:
    return f"edit-guard: WARNING - moderately large {op.label} ({percent}%) file={op.target_path}"


def _gate_large_change(
    existing: ExistingFile,
    op: Operation,
    percent: int,
    config: GuardConfig,
    store: Optional[RetryTokenStore],
) -> Decision:
    logger.info(
        "event=large_detected tool=%s file=%s percent=%d threshold=%d",
        op.tool_name,
        op.target_path,
        percent,
        config.hard_threshold,
    )

    if store is not None:
        key = fingerprint(op)
        try:
            store.sweep_expired(config.cleanup_batch)
        except OSError as e:
            logger.warning("event=cleanup_failed error=%s", e)

        try:
            if store.try_consume(key):
                return allow("retry_accepted", percent)
        except OSError as e:
            logger.warning("event=token_consume_failed key=%s error=%s", key, e)

        try:
            store.issue(key)
        except StoreUnwritable as e:
            logger.error("event=token_record_failed key=%s error=%s", key, e)
        else:
            logger.warning("event=deny tool=%s file=%s reason=large_change", op.tool_name, op.target_path)
            return Decision(
                verdict=Verdict.DENY,
                percent=percent,
                message=_deny_message(existing, op, percent, config, retry_window_s=store.ttl_s),
                reason="large_change",
            )

    logger.warning("event=deny tool=%s file=%s reason=large_change_stateless", op.tool_name, op.target_path)
    return Decision(
        verdict=Verdict.DENY,
        percent=percent,
        message=_deny_message(existing, op, percent, config, retry_window_s=0),
        reason="large_change_stateless",
    )


def decide(
    existing: ExistingFile,
    op: Operation,
    config: GuardConfig,
    store: Optional[RetryTokenStore] = None,
) -> Decision:
    """Allow, warn about, or block one proposed operation on `existing`.

    With `store=None` the guard is stateless: over-threshold proposals are
    denied and there is no retry path.
    """

    if existing.line_count < config.min_lines:
        logger.info(
            "event=skip reason=file_too_small tool=%s file=%s old_lines=%d min_lines=%d",
            op.tool_name,
            existing.path,
            existing.line_count,
            config.min_lines,
        )
        return allow("below_min_lines")

    pattern = matching_exclusion(existing.path, config.exclude_patterns)
    if pattern is not None:
        logger.info("event=skip reason=allow_pattern tool=%s file=%s pattern=%s", op.tool_name, existing.path, pattern)
        return allow("excluded")

    if existing.byte_count == 0:
        return allow("empty_file")

    if isinstance(op, FullRewrite) and not op.content:
        logger.debug("event=allow reason=empty_content tool=%s file=%s", op.tool_name, existing.path)
        return allow("empty_content")

    try:
        percent = estimate(existing, op).percent
    except InvalidInput as e:
        logger.debug("event=allow reason=cannot_estimate file=%s error=%s", existing.path, e)
        return allow("cannot_estimate")

    logger.debug(
        "event=estimate tool=%s file=%s old_lines=%d old_bytes=%d changed_percent=%d",
        op.tool_name,
        existing.path,
        existing.line_count,
        existing.byte_count,
        percent,
    )

    if percent > config.hard_threshold:
        return _gate_large_change(existing, op, percent, config, store)

    if percent > config.soft_threshold:
        logger.warning("event=warn tool=%s file=%s percent=%d edit_type=%s", op.tool_name, existing.path, percent, op.label)
        return Decision(verdict=Verdict.WARN, percent=percent, message=warn_message(op, percent), reason="moderate_change")

    return allow("small_change", percent)
