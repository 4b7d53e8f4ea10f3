"""
Module: splitter.dedup

Purpose:
    Remove detection boxes that are subsumed by another box of the same
    detection. Detectors sometimes return a question box together with a
    box for a sub-part or a near-duplicate of itself; compositing both would
    print the content twice.

Key Functions:
    - deduplicate_boxes(): Drop contained / duplicate boxes, keep order

Used By:
    - splitter.slicing.compositor
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from examsplit.common.thresholds import LAYOUT_THRESHOLDS
from examsplit.core.models.bounds import NormalizedBox

logger = logging.getLogger(__name__)


def deduplicate_boxes(
    boxes: Sequence[NormalizedBox],
    tolerance: int = LAYOUT_THRESHOLDS.containment_tolerance,
) -> List[NormalizedBox]:
    """
    Drop every box that lies inside another box of the same detection.

    Box i is dropped when it is contained in some box j (within tolerance)
    and either j is not contained in i, or the two contain each other and
    i comes later. Survivors keep their original relative order, which the
    compositor trusts as reading order. A non-empty input never comes back
    empty: when tolerance lets a chain of near-duplicates drop each other,
    the largest box (earliest on ties) is kept.

    Args:
        boxes: Boxes of one detection in reading order.
        tolerance: Slack in 0..1000 units added around the containing box.

    Returns:
        Surviving boxes in their original order.

    Example:
        >>> a = NormalizedBox(100, 100, 200, 200)
        >>> b = NormalizedBox(50, 50, 300, 300)
        >>> c = NormalizedBox(600, 600, 700, 700)
        >>> deduplicate_boxes([a, b, c])
        [NormalizedBox(ymin=50, ...), NormalizedBox(ymin=600, ...)]
    """
    dropped = set()
    for i, inner in enumerate(boxes):
        for j, outer in enumerate(boxes):
            if i == j or not inner.is_within(outer, tolerance):
                continue
            mutual = outer.is_within(inner, tolerance)
            if not mutual or i > j:
                dropped.add(i)
                break

    if boxes and len(dropped) == len(boxes):
        # A chain of near-duplicates can knock out every box; keep the largest.
        largest = max(range(len(boxes)), key=lambda i: (boxes[i].area, -i))
        logger.debug(f"All {len(boxes)} boxes contained in one another, keeping box {largest}")
        return [boxes[largest]]

    if dropped:
        logger.debug(f"Dropped {len(dropped)} contained box(es) of {len(boxes)}")
    return [box for i, box in enumerate(boxes) if i not in dropped]
