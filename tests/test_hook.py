"""Tests for the PreToolUse hook wrapper."""
import io
import json
from functools import partial
from unittest.mock import patch

from edit_guard.config import GuardConfig
from edit_guard.decision import Verdict
from edit_guard.errors import FileUnreadable
from edit_guard.hook import evaluate_hook_input, run_pre_hook
from edit_guard.token_store import FileTokenStore

from .helpers import FakeClock, numbered_lines, write_file


def _run(hook_input, config, store_factory=None):
    stdin = io.StringIO(hook_input if isinstance(hook_input, str) else json.dumps(hook_input))
    stdout, stderr = io.StringIO(), io.StringIO()
    kwargs = {"store_factory": store_factory} if store_factory else {}
    rc = run_pre_hook(stdin=stdin, stdout=stdout, stderr=stderr, config=config, **kwargs)
    return rc, stdout.getvalue(), stderr.getvalue()


def _clocked_store(clock, cfg):
    return FileTokenStore(cfg.cache_dir, ttl_s=cfg.retry_ttl_s, clock=clock)


class TestFailOpen:
    def test_malformed_json(self, config):
        assert _run("{not json", config) == (0, "", "")

    def test_missing_file_path(self, config):
        assert _run({"tool_name": "Write", "tool_input": {"content": "x"}}, config) == (0, "", "")

    def test_unknown_tool(self, config):
        d = evaluate_hook_input({"tool_name": "Bash", "tool_input": {"command": "ls"}}, config)
        assert d.verdict is Verdict.ALLOW
        assert d.reason == "unknown_tool"

    def test_new_file(self, tmp_path, config):
        target = tmp_path / "new.py"
        d = evaluate_hook_input({"tool_name": "Write", "tool_input": {"file_path": str(target), "content": "x"}}, config)
        assert d.reason == "new_file"

    def test_bad_multiedit_payload(self, tmp_path, config):
        target = write_file(tmp_path, "f.py", numbered_lines(50))
        d = evaluate_hook_input(
            {"tool_name": "MultiEdit", "tool_input": {"file_path": str(target), "edits": "nope"}}, config
        )
        assert d.reason == "bad_input"

    def test_internal_error_exits_cleanly(self, tmp_path, config):
        target = write_file(tmp_path, "f.py", numbered_lines(50))

        def boom(cfg):
            raise RuntimeError("unexpected")

        hook_input = {"tool_name": "Write", "tool_input": {"file_path": str(target), "content": "other\n"}}
        assert _run(hook_input, config, store_factory=boom) == (0, "", "")

    def test_unreadable_file_allows_with_advisory(self, tmp_path, config):
        target = write_file(tmp_path, "f.py", numbered_lines(50))
        hook_input = {"tool_name": "Write", "tool_input": {"file_path": str(target), "content": "other\n"}}
        with patch("edit_guard.hook.read_existing", side_effect=FileUnreadable("Permission denied")):
            rc, out, err = _run(hook_input, config)
        assert rc == 0
        assert out == ""
        assert err.startswith(f"edit-guard: could not read {target}; skipping size check")
        assert "Permission denied" in err


class TestVerdictOutput:
    def test_deny_emits_json_and_retry_allows(self, tmp_path, config):
        target = write_file(tmp_path, "big.py", numbered_lines(100))
        content = numbered_lines(40) + numbered_lines(60, prefix="fresh")
        hook_input = {"tool_name": "Write", "tool_input": {"file_path": str(target), "content": content}}
        factory = partial(_clocked_store, FakeClock())

        rc, out, err = _run(hook_input, config, store_factory=factory)
        assert rc == 0
        payload = json.loads(out)
        hso = payload["hookSpecificOutput"]
        assert hso["hookEventName"] == "PreToolUse"
        assert hso["permissionDecision"] == "deny"
        assert hso["permissionDecisionReason"].startswith("LARGE_EDIT_GUARD v1 action=blocked")
        assert "percent=60" in hso["permissionDecisionReason"]

        assert _run(hook_input, config, store_factory=factory) == (0, "", "")

    def test_warn_goes_to_stderr(self, tmp_path, config):
        text = "123456789\n" * 30
        target = write_file(tmp_path, "mid.py", text)
        hook_input = {
            "tool_name": "Edit",
            "tool_input": {"file_path": str(target), "old_string": "123456789\n" * 9, "new_string": "x"},
        }
        rc, out, err = _run(hook_input, config)
        assert rc == 0
        assert out == ""
        assert "WARNING - moderately large edit (30%)" in err

    def test_exclusion_skips_before_reading(self, tmp_path):
        cfg = GuardConfig(raw={"allow_patterns": ["*.py"], "cache_dir": str(tmp_path / "tokens")})
        d = evaluate_hook_input(
            {"tool_name": "Write", "tool_input": {"file_path": str(tmp_path / "missing.py"), "content": "x"}}, cfg
        )
        assert d.reason == "excluded"

    def test_audit_log_records_denial(self, tmp_path):
        audit = tmp_path / "audit.jsonl"
        cfg = GuardConfig(raw={"cache_dir": str(tmp_path / "tokens"), "audit_log": str(audit)})
        target = write_file(tmp_path, "big.py", numbered_lines(100))
        hook_input = {"tool_name": "Write", "tool_input": {"file_path": str(target), "content": "all new\n"}}

        _run(hook_input, cfg)
        events = [json.loads(line) for line in audit.read_text().splitlines()]
        assert len(events) == 1
        assert events[0]["action"] == "decision"
        assert events[0]["ok"] is False
        assert events[0]["details"]["verdict"] == "deny"
        assert events[0]["details"]["percent"] == 100
