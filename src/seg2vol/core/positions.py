"""Patient position helpers: equality, ordering and slice gap filling."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from functools import cmp_to_key

logger = logging.getLogger(__name__)

Position = tuple[float, float, float]

_GAP_TOLERANCE = 1e-6


def equal_pos_pat(pos1: Sequence[float], pos2: Sequence[float]) -> bool:
    """Check two patient positions for exact equality (no tolerance)."""
    if len(pos1) != len(pos2):
        return False
    return all(a == b for a, b in zip(pos1, pos2))


def compare_pos_pat(pos1: Sequence[float], pos2: Sequence[float]) -> float:
    """Compare two patient positions, last axis first.

    Returns the first nonzero ``pos2[i] - pos1[i]`` walking from the last
    index down, so sorting with it orders positions descending by z, then y,
    then x.
    """
    diff = 0.0
    for index in reversed(range(len(pos1))):
        diff = pos2[index] - pos1[index]
        if diff != 0:
            return diff
    return diff


def unique_positions(positions: Iterable[Sequence[float]]) -> list[Position]:
    """Drop duplicate positions, keeping the first occurrence order."""
    seen: set[Position] = set()
    result: list[Position] = []
    for pos in positions:
        key = tuple(pos)
        if key not in seen:
            seen.add(key)
            result.append(key)
    return result


def sort_positions(positions: Iterable[Sequence[float]]) -> list[Position]:
    """Sort positions descending with :func:`compare_pos_pat`."""
    return sorted((tuple(p) for p in positions), key=cmp_to_key(compare_pos_pat))


def build_position_set(
    positions: Iterable[Sequence[float]],
    slice_spacing: float | None,
) -> list[Position]:
    """Build the completed, sorted, gap-free list of slice positions.

    Frames only exist where a segment has content, so empty slices between
    two frame positions are synthesized every *slice_spacing* along z.
    """
    sorted_positions = sort_positions(unique_positions(positions))
    if len(sorted_positions) < 2:
        return sorted_positions

    if slice_spacing is None or slice_spacing <= 0:
        logger.warning(
            f"No usable slice spacing ({slice_spacing}), missing slices are not filled"
        )
        return sorted_positions

    completed: list[Position] = []
    inserted = 0
    for current, following in zip(sorted_positions, sorted_positions[1:]):
        completed.append(current)
        # Whole spacings only, tolerant of float error in the division
        steps = math.floor((current[2] - following[2]) / slice_spacing + _GAP_TOLERANCE)
        for k in range(1, steps):
            completed.append((current[0], current[1], current[2] - k * slice_spacing))
            inserted += 1
    completed.append(sorted_positions[-1])

    if inserted:
        logger.debug(f"Inserted {inserted} empty slice position(s)")
    return completed


def index_positions(positions: Sequence[Sequence[float]]) -> dict[Position, int]:
    """Map each position to its slice index."""
    return {tuple(pos): index for index, pos in enumerate(positions)}
