from __future__ import annotations

import hashlib
from typing import Iterable

from .operation import FullRewrite, MultiRegionReplace, Operation, SingleRegionReplace


def _payload_fields(op: Operation) -> Iterable[bytes]:
    if isinstance(op, FullRewrite):
        yield op.content
    elif isinstance(op, SingleRegionReplace):
        yield op.old
        yield op.new
    elif isinstance(op, MultiRegionReplace):
        yield str(len(op.edits)).encode("ascii")
        for old, new in op.edits:
            yield old
            yield new
    else:
        raise TypeError(f"Unsupported operation: {type(op).__name__}")


def fingerprint(op: Operation) -> str:
    """Stable SHA-256 hex digest identifying a proposed edit.

    Each field is length-prefixed so adjacent fields cannot alias. Edit
    order is part of the digest: the same MultiEdit spans submitted in a
    different order are a different proposal.
    """

    h = hashlib.sha256()
    fields = [op.target_path.encode("utf-8"), op.kind.value.encode("ascii"), *_payload_fields(op)]
    for f in fields:
        h.update(len(f).to_bytes(8, "big"))
        h.update(f)
    return h.hexdigest()
