from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional, TextIO

from .audit import AuditLogger, audit_event
from .config import GuardConfig
from .decision import Decision, Verdict, allow, decide, matching_exclusion
from .errors import FileUnreadable, InputParseError, StoreUnwritable, UnsupportedOperationKind
from .existing import read_existing
from .operation import parse_operation
from .token_store import FileTokenStore, RetryTokenStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[GuardConfig], Optional[RetryTokenStore]]


def read_hook_input(stream: TextIO) -> Optional[Dict[str, Any]]:
    try:
        data = json.load(stream)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.debug("event=exit reason=bad_json error=%s", e)
        return None
    return data if isinstance(data, dict) else None


def open_file_store(config: GuardConfig) -> Optional[RetryTokenStore]:
    try:
        return FileTokenStore(config.cache_dir, ttl_s=config.retry_ttl_s)
    except StoreUnwritable as e:
        logger.error("event=store_unavailable cache_dir=%s error=%s", config.cache_dir, e)
        return None


def evaluate_hook_input(
    hook_input: Optional[Dict[str, Any]],
    config: GuardConfig,
    *,
    store_factory: StoreFactory = open_file_store,
) -> Decision:
    """Turn one PreToolUse record into a Decision. Never raises GuardError."""

    if hook_input is None:
        return allow("bad_input")

    try:
        op = parse_operation(hook_input)
    except UnsupportedOperationKind as e:
        logger.debug("event=allow reason=unknown_tool detail=%s", e)
        return allow("unknown_tool")
    except InputParseError as e:
        logger.debug("event=exit reason=bad_tool_input detail=%s", e)
        return allow("bad_input")

    logger.debug("event=parsed_input tool=%s file=%s", op.tool_name, op.target_path)

    # Cheap exit before touching the file system.
    pattern = matching_exclusion(op.target_path, config.exclude_patterns)
    if pattern is not None:
        logger.info("event=skip reason=allow_pattern tool=%s file=%s pattern=%s", op.tool_name, op.target_path, pattern)
        return allow("excluded")

    try:
        existing = read_existing(op.target_path)
    except FileUnreadable as e:
        logger.warning("event=allow reason=unreadable tool=%s file=%s error=%s", op.tool_name, op.target_path, e)
        return allow("unreadable", message=f"edit-guard: could not read {op.target_path}; skipping size check ({e})")

    if existing is None:
        logger.info("event=allow reason=new_file tool=%s file=%s", op.tool_name, op.target_path)
        return allow("new_file")

    store = store_factory(config) if existing.line_count >= config.min_lines else None
    return decide(existing, op, config, store)


def deny_payload(reason: str) -> Dict[str, Any]:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": "deny",
            "permissionDecisionReason": reason,
        }
    }


def emit_decision(decision: Decision, *, stdout: TextIO, stderr: TextIO) -> None:
    """Write a decision in the PreToolUse hook protocol.

    Allowing writes nothing to stdout; denying writes exactly one JSON
    object to stdout. Advisories go to stderr.
    """

    if decision.verdict is Verdict.DENY:
        stdout.write(json.dumps(deny_payload(decision.message)) + "\n")
        return
    if decision.message:
        stderr.write(decision.message + "\n")


def run_pre_hook(
    *,
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
    config: GuardConfig,
    store_factory: StoreFactory = open_file_store,
) -> int:
    hook_input = read_hook_input(stdin)
    try:
        decision = evaluate_hook_input(hook_input, config, store_factory=store_factory)
    except Exception:
        # Fail open.
        logger.exception("event=allow reason=internal_error")
        return 0

    emit_decision(decision, stdout=stdout, stderr=stderr)

    audit = AuditLogger.from_config(config.audit_log)
    if audit is not None and (decision.verdict is not Verdict.ALLOW or decision.reason == "retry_accepted"):
        tool_input = (hook_input or {}).get("tool_input") or {}
        audit.log(
            audit_event(
                action="decision",
                ok=decision.allowed,
                details={
                    "tool": (hook_input or {}).get("tool_name"),
                    "file": tool_input.get("file_path") if isinstance(tool_input, dict) else None,
                    "verdict": decision.verdict.value,
                    "percent": decision.percent,
                    "reason": decision.reason,
                },
            )
        )
    return 0
