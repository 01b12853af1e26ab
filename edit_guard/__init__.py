"""Large-edit guard for automated code-editing agents.

Core design goals:
- Fail open: the guard is never the reason a legitimate edit is lost
- Cheap line/byte level change estimates, no AST diffing
- One-time retry tokens so a deliberate large change can go through
- Bounded work per invocation (token cleanup is batched)
"""

__all__ = []
