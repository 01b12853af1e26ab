from __future__ import annotations


class GuardError(RuntimeError):
    """Base class for conditions the guard recovers from by allowing the edit."""


class InputParseError(GuardError):
    pass


class UnsupportedOperationKind(GuardError):
    pass


class FileUnreadable(GuardError):
    pass


class InvalidInput(GuardError):
    pass


class StoreUnwritable(GuardError):
    pass


class ConfigError(GuardError):
    pass
