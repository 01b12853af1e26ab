from __future__ import annotations

import argparse
import logging
import os
import sys

from .checks import ALL_CHECKS
from .config import GuardConfig, env_overrides, load_guard_config
from .errors import ConfigError, StoreUnwritable
from .hook import run_pre_hook
from .logging_utils import configure_logging
from .post_hook import run_post_hook
from .token_store import FileTokenStore

logger = logging.getLogger(__name__)


def _config_from_args(args: argparse.Namespace) -> GuardConfig:
    try:
        cfg = load_guard_config(args.config)
    except ConfigError as e:
        sys.stderr.write(f"edit-guard: {e}; using environment and defaults\n")
        cfg = GuardConfig(raw=env_overrides(os.environ))
    configure_logging(cfg.log_level, tag=cfg.log_tag, log_path=cfg.log_path, fallback_dir=cfg.cache_dir)
    return cfg


def cmd_pre(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    return run_pre_hook(stdin=sys.stdin, stdout=sys.stdout, stderr=sys.stderr, config=cfg)


def cmd_check(args: argparse.Namespace) -> int:
    _config_from_args(args)
    check = ALL_CHECKS[args.subcmd]()
    return run_post_hook(check, stdin=sys.stdin, stdout=sys.stdout, stderr=sys.stderr)


def _store_from_config(cfg: GuardConfig) -> FileTokenStore:
    try:
        return FileTokenStore(cfg.cache_dir, ttl_s=cfg.retry_ttl_s)
    except StoreUnwritable as e:
        raise SystemExit(f"edit-guard: {e}")


def cmd_sweep(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    store = _store_from_config(cfg)
    batch = args.batch if args.batch is not None else cfg.cleanup_batch
    removed = store.sweep_expired(batch)
    print(f"Removed {removed} expired token(s) from {store.directory}")
    return 0


def cmd_tokens(args: argparse.Namespace) -> int:
    store = _store_from_config(_config_from_args(args))
    tokens = store.list_tokens()
    if not tokens:
        print(f"No retry tokens in {store.directory}")
        return 0
    for t in tokens:
        state = "expired" if t.expired else "live"
        print(f"{t.key}  age={int(t.age_s)}s  {state}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="edit-guard")
    p.add_argument("--config", help="YAML config file (defaults to $LARGE_EDIT_CONFIG or ~/.config/edit-guard/config.yaml)")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("pre", help="PreToolUse hook: guard Write/Edit/MultiEdit against large rewrites")
    sp.set_defaults(func=cmd_pre)

    sp = sub.add_parser("eof", help="PostToolUse hook: ensure text files end with a newline")
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("seven-bit", help="PostToolUse hook: report non-7-bit ASCII characters")
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("ruff", help="PostToolUse hook: ruff check --fix and ruff format Python files")
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("sweep", help="Remove expired retry tokens")
    sp.add_argument("--batch", type=int, default=None, help="Max tokens to inspect (default: cleanup_batch)")
    sp.set_defaults(func=cmd_sweep)

    sp = sub.add_parser("tokens", help="List retry tokens")
    sp.set_defaults(func=cmd_tokens)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
