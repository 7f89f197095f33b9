"""
Tests for greedy non-maximum suppression.
"""

import pytest

from detection.geometry import intersection_over_union
from detection.nms import non_max_suppression
from models.detection import RawDetection


def _det(x, y, w, h, confidence, class_id=0):
    return RawDetection(x=x, y=y, w=w, h=h, confidence=confidence, class_id=class_id)


class TestNonMaxSuppression:
    def test_empty(self):
        assert non_max_suppression([], 0.5) == []

    def test_overlap_above_threshold_suppressed(self):
        """Two boxes with IoU 0.6 at threshold 0.5: only the stronger survives."""
        # Unit-height boxes of width 0.2 offset by 0.05 -> IoU = 0.15 / 0.25 = 0.6
        a = _det(0.5, 0.5, 0.2, 0.2, 0.9)
        b = _det(0.55, 0.5, 0.2, 0.2, 0.8)
        assert intersection_over_union(a, b) == pytest.approx(0.6)

        kept = non_max_suppression([b, a], 0.5)
        assert kept == [a]

    def test_returns_subset_sorted(self):
        dets = [
            _det(0.1, 0.1, 0.1, 0.1, 0.6),
            _det(0.5, 0.5, 0.1, 0.1, 0.9),
            _det(0.8, 0.8, 0.1, 0.1, 0.7),
        ]
        kept = non_max_suppression(dets, 0.5)
        assert all(any(k is d for d in dets) for k in kept)
        confidences = [k.confidence for k in kept]
        assert confidences == sorted(confidences, reverse=True)
        assert len(kept) == 3

    def test_threshold_one_keeps_all_but_exact_duplicates(self):
        a = _det(0.5, 0.5, 0.2, 0.2, 0.9)
        b = _det(0.52, 0.5, 0.2, 0.2, 0.8)
        dup = _det(0.5, 0.5, 0.2, 0.2, 0.7)
        kept = non_max_suppression([a, b, dup], 1.0)
        assert kept == [a, b]

    def test_threshold_zero_suppresses_any_overlap(self):
        a = _det(0.5, 0.5, 0.2, 0.2, 0.9)
        b = _det(0.65, 0.5, 0.2, 0.2, 0.8)
        far = _det(0.1, 0.1, 0.05, 0.05, 0.3)
        kept = non_max_suppression([a, b, far], 0.0)
        assert kept == [a, far]

    def test_equal_confidence_keeps_input_order(self):
        first = _det(0.5, 0.5, 0.2, 0.2, 0.8, class_id=1)
        second = _det(0.5, 0.5, 0.2, 0.2, 0.8, class_id=2)
        assert non_max_suppression([first, second], 0.5) == [first]

    def test_class_agnostic(self):
        """Overlapping boxes of different classes still suppress each other."""
        a = _det(0.5, 0.5, 0.2, 0.2, 0.9, class_id=0)
        b = _det(0.5, 0.5, 0.2, 0.2, 0.8, class_id=39)
        assert non_max_suppression([a, b], 0.5) == [a]

    def test_suppressed_box_does_not_suppress(self):
        """A chain a-b-c: b is suppressed by a, so c (overlapping only b) survives."""
        a = _det(0.30, 0.5, 0.2, 0.2, 0.9)
        b = _det(0.40, 0.5, 0.2, 0.2, 0.8)
        c = _det(0.50, 0.5, 0.2, 0.2, 0.7)
        kept = non_max_suppression([a, b, c], 0.3)
        assert kept == [a, c]
