"""
utils.py – Ring ID assignment and shared time-window helpers.

Ring IDs
--------
IDs are assigned sequentially in detection order (cycles, then fan-in, then
fan-out): RING_001, RING_002, …  Rings are never merged; an account that
appears in several rings is referenced by the first one that claims it.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Hashable, Iterable, Iterator, List, Sequence, Tuple

log = logging.getLogger(__name__)


def format_ring_id(index: int) -> str:
    return f"RING_{index:03d}"


def assign_ring_ids(
    cycle_rings: List[Dict],
    fan_in_rings: List[Dict],
    fan_out_rings: List[Dict],
) -> List[Dict]:
    """
    Combine ring lists in priority order and inject sequential ring IDs.

    Returns a flat list with ring_id set on each ring dict.
    """
    combined = cycle_rings + fan_in_rings + fan_out_rings
    for i, ring in enumerate(combined, start=1):
        ring["ring_id"] = format_ring_id(i)

    log.info(
        "Ring IDs assigned: %d cycle, %d fan-in, %d fan-out",
        len(cycle_rings), len(fan_in_rings), len(fan_out_rings),
    )
    return combined


def sliding_windows(sorted_times: Sequence, window: timedelta) -> Iterator[Tuple[int, int]]:
    """
    Yield ``(start, end)`` index pairs (both inclusive), one per end position,
    where start is the earliest index within ``window`` of ``sorted_times[end]``.
    """
    start = 0
    for end in range(len(sorted_times)):
        while sorted_times[end] - sorted_times[start] > window:
            start += 1
        yield start, end


def unique_in_order(values: Iterable[Hashable]) -> List:
    return list(dict.fromkeys(values))
