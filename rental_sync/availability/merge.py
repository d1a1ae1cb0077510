"""
Combine authoritative reservations with advisory external blocks into one
ordered availability view.

Pure functions, no I/O. Intervals are half-open: ``end`` is the first free date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

from rental_sync.feeds.parser import ExternalBlock
from rental_sync.ledger.records import ReservationRecord

ORIGIN_INTERNAL = "internal"
ORIGIN_EXTERNAL = "external"

_ORIGIN_RANK = {ORIGIN_INTERNAL: 0, ORIGIN_EXTERNAL: 1}


@dataclass(frozen=True)
class AvailabilityInterval:
    start: date
    end: date
    origin: str
    label: str

    def as_dict(self) -> dict[str, str]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "origin": self.origin,
            "label": self.label,
        }


def union_external(blocks: Iterable[ExternalBlock]) -> list[AvailabilityInterval]:
    """
    Union external blocks into a minimal covering set.

    Sort by start, then sweep: the next block is folded into the current interval
    whenever it starts on or before the current end (overlapping or adjacent).
    The label lists the distinct sources that contributed, sorted, so the result
    does not depend on input order.

    Example:
        Blocks 2025-09-05..09-07 and 2025-09-06..09-09 -> one interval 2025-09-05..09-09
    """
    ordered = sorted(blocks)
    if not ordered:
        return []

    merged: list[AvailabilityInterval] = []
    cur_start, cur_end = ordered[0].start, ordered[0].end
    sources = {ordered[0].source}

    for block in ordered[1:]:
        if block.start <= cur_end:
            cur_end = max(cur_end, block.end)
            sources.add(block.source)
            continue
        merged.append(_external_interval(cur_start, cur_end, sources))
        cur_start, cur_end, sources = block.start, block.end, {block.source}

    merged.append(_external_interval(cur_start, cur_end, sources))
    return merged


def _external_interval(start: date, end: date, sources: set[str]) -> AvailabilityInterval:
    return AvailabilityInterval(
        start=start,
        end=end,
        origin=ORIGIN_EXTERNAL,
        label=f"Blocked ({', '.join(sorted(sources))})",
    )


def merge_availability(
    internal: Iterable[ReservationRecord], external: Iterable[ExternalBlock]
) -> list[AvailabilityInterval]:
    """
    Merge ledger reservations and external blocks.

    Internal reservations are reported verbatim (they cannot overlap each other).
    External blocks are unioned among themselves only; an external interval that
    overlaps an internal one is still reported next to it.

    Args:
        internal: Reservations from the ledger
        external: Blocks from the feed aggregator, in any order

    Returns:
        list[AvailabilityInterval]: Sorted by (start, origin, end)
    """
    intervals = [
        AvailabilityInterval(
            start=r.start_date,
            end=r.end_date,
            origin=ORIGIN_INTERNAL,
            label=f"{r.property_code} reserved",
        )
        for r in internal
    ]
    intervals.extend(union_external(external))
    intervals.sort(key=lambda i: (i.start, _ORIGIN_RANK[i.origin], i.end, i.label))
    return intervals


def clip_blocks(
    blocks: Iterable[ExternalBlock], start: Optional[date], end: Optional[date]
) -> list[ExternalBlock]:
    """Keep blocks intersecting the optional window [start, end)."""
    return [
        b
        for b in blocks
        if (end is None or b.start < end) and (start is None or b.end > start)
    ]


def find_blocking(
    intervals: Sequence[AvailabilityInterval], start: date, end: date
) -> list[AvailabilityInterval]:
    """Intervals that intersect [start, end)."""
    return [i for i in intervals if i.start < end and start < i.end]


def is_range_free(intervals: Sequence[AvailabilityInterval], start: date, end: date) -> bool:
    """
    Answer "is [start, end) free?" against a merged availability view.

    Both internal and external intervals block, since external sources are the
    only knowledge of bookings taken on other channels.
    """
    if start >= end:
        raise ValueError("start must be before end")
    return not find_blocking(intervals, start, end)
