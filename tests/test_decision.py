"""Tests for the allow/warn/deny decision engine."""
from unittest.mock import patch

from edit_guard.config import GuardConfig
from edit_guard.decision import HEADER_TAG, Verdict, decide, matching_exclusion
from edit_guard.errors import StoreUnwritable
from edit_guard.existing import ExistingFile
from edit_guard.operation import FullRewrite, MultiRegionReplace, SingleRegionReplace
from edit_guard.token_store import FileTokenStore, MemoryTokenStore

from .helpers import existing_from_text, numbered_lines


def _large_rewrite():
    old = numbered_lines(100)
    new = numbered_lines(40) + numbered_lines(60, prefix="fresh")
    existing = existing_from_text(old)
    return existing, FullRewrite(target_path=existing.path, content=new.encode())


class _BrokenStore:
    ttl_s = 120

    def sweep_expired(self, max_checked):
        return 0

    def try_consume(self, key):
        return False

    def issue(self, key):
        raise StoreUnwritable("read-only file system")


class TestEarlyExits:
    def test_small_file_always_allowed(self, config):
        existing = existing_from_text(numbered_lines(19))
        op = FullRewrite(target_path=existing.path, content=b"completely different\n")
        d = decide(existing, op, config, MemoryTokenStore(ttl_s=120))
        assert d.verdict is Verdict.ALLOW
        assert d.reason == "below_min_lines"

    def test_excluded_path(self, tmp_path):
        cfg = GuardConfig(raw={"allow_patterns": "*.lock:*/generated/*", "cache_dir": str(tmp_path)})
        existing = existing_from_text(numbered_lines(50), path="/repo/generated/schema.py")
        op = FullRewrite(target_path=existing.path, content=b"new\n")
        d = decide(existing, op, cfg, MemoryTokenStore(ttl_s=120))
        assert d.verdict is Verdict.ALLOW
        assert d.reason == "excluded"

    def test_empty_file_with_zero_min_lines(self, tmp_path):
        cfg = GuardConfig(raw={"min_lines": 0, "cache_dir": str(tmp_path)})
        existing = ExistingFile(path="empty.py", content=b"")
        d = decide(existing, FullRewrite(target_path="empty.py", content=b"x\n"), cfg)
        assert d.verdict is Verdict.ALLOW
        assert d.reason == "empty_file"

    def test_empty_write_content_allowed(self, config):
        existing = existing_from_text(numbered_lines(50))
        d = decide(existing, FullRewrite(target_path=existing.path, content=b""), config)
        assert d.reason == "empty_content"


class TestThresholds:
    def test_identical_rewrite_is_silent(self, config):
        text = numbered_lines(40)
        existing = existing_from_text(text)
        d = decide(existing, FullRewrite(target_path=existing.path, content=text.encode()), config)
        assert d.verdict is Verdict.ALLOW
        assert d.percent == 0
        assert d.message == ""

    def test_small_edit_creates_no_token(self, tmp_path, config, clock):
        # 30 lines, 300 bytes
        existing = ExistingFile(path="/repo/f.py", content=b"123456789\n" * 30)
        op = SingleRegionReplace(target_path="/repo/f.py", old=b"123456789\n", new=b"x\n")
        store = FileTokenStore(tmp_path / "tokens", ttl_s=120, clock=clock)

        d = decide(existing, op, config, store)
        assert d.percent == 3
        assert d.verdict is Verdict.ALLOW
        assert list(store.directory.iterdir()) == []

    def test_moderate_change_warns(self, config):
        existing = ExistingFile(path="/repo/f.py", content=b"123456789\n" * 30)
        op = MultiRegionReplace(target_path="/repo/f.py", edits=((b"x" * 60, b""), (b"y" * 30, b"")))
        d = decide(existing, op, config, MemoryTokenStore(ttl_s=120))
        assert d.verdict is Verdict.WARN
        assert d.percent == 30
        assert "moderately large multi-edit (30%)" in d.message
        assert "\n" not in d.message

    def test_threshold_is_exclusive(self, tmp_path):
        cfg = GuardConfig(raw={"threshold": 50, "warn_threshold": 25, "cache_dir": str(tmp_path)})
        existing = ExistingFile(path="f.py", content=b"123456789\n" * 30)
        op = SingleRegionReplace(target_path="f.py", old=b"z" * 150, new=b"")
        d = decide(existing, op, cfg, MemoryTokenStore(ttl_s=120))
        assert d.percent == 50
        assert d.verdict is Verdict.WARN


class TestRetryFlow:
    def test_deny_then_retry_then_deny(self, config, clock):
        existing, op = _large_rewrite()
        store = MemoryTokenStore(ttl_s=120, clock=clock)

        first = decide(existing, op, config, store)
        assert first.verdict is Verdict.DENY
        assert first.percent == 60

        second = decide(existing, op, config, store)
        assert second.verdict is Verdict.ALLOW
        assert second.reason == "retry_accepted"

        third = decide(existing, op, config, store)
        assert third.verdict is Verdict.DENY

    def test_retry_after_window_is_denied(self, config, clock):
        existing, op = _large_rewrite()
        store = MemoryTokenStore(ttl_s=120, clock=clock)

        assert decide(existing, op, config, store).verdict is Verdict.DENY
        clock.advance(121)
        assert decide(existing, op, config, store).verdict is Verdict.DENY

    def test_changed_proposal_does_not_use_token(self, config, clock):
        existing, op = _large_rewrite()
        store = MemoryTokenStore(ttl_s=120, clock=clock)
        decide(existing, op, config, store)

        tweaked = FullRewrite(target_path=op.target_path, content=op.content + b"one more\n")
        assert decide(existing, tweaked, config, store).verdict is Verdict.DENY

    def test_file_store_round_trip(self, config, clock):
        existing, op = _large_rewrite()
        store = FileTokenStore(config.cache_dir, ttl_s=config.retry_ttl_s, clock=clock)
        assert decide(existing, op, config, store).verdict is Verdict.DENY
        assert len(store.list_tokens()) == 1
        assert decide(existing, op, config, store).verdict is Verdict.ALLOW
        assert store.list_tokens() == []

    def test_large_change_sweeps_stale_tokens(self, config, clock):
        existing, op = _large_rewrite()
        store = FileTokenStore(config.cache_dir, ttl_s=config.retry_ttl_s, clock=clock)
        store.issue("stale0ther0proposal")
        clock.advance(config.retry_ttl_s + 1)

        assert decide(existing, op, config, store).verdict is Verdict.DENY
        assert not store.token_path("stale0ther0proposal").exists()
        assert len(store.list_tokens()) == 1

    def test_sweep_uses_cleanup_batch(self, tmp_path, clock):
        cfg = GuardConfig(raw={"cleanup_batch": 7, "cache_dir": str(tmp_path / "tokens")})
        store = MemoryTokenStore(ttl_s=120, clock=clock)
        existing, op = _large_rewrite()
        with patch.object(store, "sweep_expired", wraps=store.sweep_expired) as sweep:
            decide(existing, op, cfg, store)
        sweep.assert_called_once_with(7)

    def test_deny_message_header(self, config, clock):
        existing, op = _large_rewrite()
        d = decide(existing, op, config, MemoryTokenStore(ttl_s=120, clock=clock))
        header = d.message.splitlines()[0]
        assert header == (
            f"{HEADER_TAG} action=blocked stage=first_attempt tool=Write percent=60 "
            f"threshold=50 retry_window_s=120 file={existing.path}"
        )
        assert "Existing size: 100 lines" in d.message
        assert "within 120s" in d.message


class TestStatelessMode:
    def test_no_store_denies_without_retry(self, config):
        existing, op = _large_rewrite()
        for _ in range(2):
            d = decide(existing, op, config, None)
            assert d.verdict is Verdict.DENY
            assert d.reason == "large_change_stateless"
            assert "retry_window_s=0" in d.message.splitlines()[0]

    def test_issue_failure_degrades(self, config):
        existing, op = _large_rewrite()
        d = decide(existing, op, config, _BrokenStore())
        assert d.verdict is Verdict.DENY
        assert d.reason == "large_change_stateless"


def test_matching_exclusion_order():
    patterns = ["*.md", "/repo/*"]
    assert matching_exclusion("/repo/README.md", patterns) == "*.md"
    assert matching_exclusion("/repo/src/deep/x.py", patterns) == "/repo/*"
    assert matching_exclusion("/elsewhere/x.py", patterns) is None
