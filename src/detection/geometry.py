"""
Box geometry helpers.

Center-form boxes are anything exposing ``x, y, w, h`` (e.g. RawDetection).
"""

from __future__ import annotations

from typing import Tuple


def center_to_corners(x: float, y: float, w: float, h: float) -> Tuple[float, float, float, float]:
    """Convert center-form (x, y, w, h) to corner-form (x1, y1, x2, y2)."""
    return (x - w / 2, y - h / 2, x + w / 2, y + h / 2)


def _corner_iou(
    a: Tuple[float, float, float, float],
    b: Tuple[float, float, float, float],
) -> float:
    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b

    inter_w = min(ax2, bx2) - max(ax1, bx1)
    inter_h = min(ay2, by2) - max(ay1, by1)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    intersection = inter_w * inter_h
    # Areas come from the same corners as the intersection so IoU(a, a) is exactly 1.
    area_a = (ax2 - ax1) * (ay2 - ay1)
    area_b = (bx2 - bx1) * (by2 - by1)
    union = area_a + area_b - intersection
    if union <= 0:
        return 0.0

    return intersection / union


def intersection_over_union(a, b) -> float:
    """
    Calculate Intersection over Union (IoU) between two center-form boxes.

    Args:
        a: First box with x, y, w, h attributes
        b: Second box with x, y, w, h attributes

    Returns:
        IoU value between 0 and 1 (0 for disjoint or degenerate boxes)
    """
    return _corner_iou(
        center_to_corners(a.x, a.y, a.w, a.h),
        center_to_corners(b.x, b.y, b.w, b.h),
    )
