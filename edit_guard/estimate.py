from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .errors import InvalidInput, UnsupportedOperationKind
from .existing import ExistingFile, split_lines
from .operation import FullRewrite, MultiRegionReplace, Operation, SingleRegionReplace


@dataclass(frozen=True)
class ChangeEstimate:
    percent: int


def clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def count_retained_lines(old_lines: Sequence[bytes], new_lines: Sequence[bytes]) -> int:
    """Count old lines that still appear, in order, in the new content.

    Greedy containment scan: each old line is matched against its first
    occurrence in `new_lines` at or after the cursor left by the previous
    match. Old lines with no such occurrence are skipped and do not move
    the cursor. This is not a longest-common-subsequence; duplicated or
    reordered lines can be under- or over-counted.
    """

    positions: Dict[bytes, List[int]] = {}
    for idx, line in enumerate(new_lines):
        positions.setdefault(line, []).append(idx)

    cursor = 0
    retained = 0
    for line in old_lines:
        occ = positions.get(line)
        if not occ:
            continue
        i = bisect.bisect_left(occ, cursor)
        if i == len(occ):
            continue
        retained += 1
        cursor = occ[i] + 1
    return retained


def _full_rewrite_percent(existing: ExistingFile, op: FullRewrite) -> int:
    old_lines = existing.lines()
    retained = count_retained_lines(old_lines, split_lines(op.content))
    return 100 - (retained * 100) // len(old_lines)


def _replaced_bytes_percent(existing: ExistingFile, replaced: int) -> int:
    # Overlapping spans are summed as-is; the total may exceed the file size.
    return (replaced * 100) // existing.byte_count


def estimate(existing: ExistingFile, op: Operation) -> ChangeEstimate:
    """Estimate what percentage of `existing` the operation would change."""

    if existing.byte_count == 0 or existing.line_count == 0:
        raise InvalidInput(f"Cannot estimate change against empty file {existing.path}")

    if isinstance(op, FullRewrite):
        percent = _full_rewrite_percent(existing, op)
    elif isinstance(op, SingleRegionReplace):
        percent = _replaced_bytes_percent(existing, len(op.old))
    elif isinstance(op, MultiRegionReplace):
        percent = _replaced_bytes_percent(existing, sum(len(old) for old, _new in op.edits))
    else:
        raise UnsupportedOperationKind(f"Unsupported operation: {type(op).__name__}")

    return ChangeEstimate(percent=clamp_percent(percent))
