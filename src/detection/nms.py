"""
Greedy non-maximum suppression over center-form detections.
"""

from __future__ import annotations

from typing import List, Sequence, TypeVar

from .geometry import intersection_over_union

T = TypeVar("T")


def non_max_suppression(detections: Sequence[T], iou_threshold: float) -> List[T]:
    """
    Suppress overlapping detections, keeping the most confident.

    Detections are swept in descending confidence order (ties keep input
    order). Each kept detection suppresses every later one whose IoU with it
    exceeds iou_threshold; exact duplicates (IoU == 1) are always suppressed.

    Args:
        detections: Items with x, y, w, h and confidence attributes
        iou_threshold: Overlap above which the weaker detection is dropped

    Returns:
        The kept input objects, most confident first
    """
    if not detections:
        return []

    # sorted() is stable with reverse=True
    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    suppressed = [False] * len(ordered)
    kept: List[T] = []

    for i, current in enumerate(ordered):
        if suppressed[i]:
            continue
        kept.append(current)

        for j in range(i + 1, len(ordered)):
            if suppressed[j]:
                continue
            iou = intersection_over_union(current, ordered[j])
            if iou > iou_threshold or iou >= 1.0:
                suppressed[j] = True

    return kept
