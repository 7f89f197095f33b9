"""
Raw output decoder.

Turns the flat YOLO-style output tensor into candidate detections. Each of
the N slots is laid out as::

    [x, y, w, h, objectness, class_score_0 ... class_score_{C-1}]
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from models.detection import RawDetection

# Geometry (4) + objectness (1)
SLOT_HEADER = 5


class RawOutputDecoder:
    """Decode a flat N x (5 + C) float buffer into RawDetections."""

    def __init__(
        self,
        num_classes: int,
        confidence_threshold: float,
        early_reject_threshold: Optional[float] = None,
    ) -> None:
        """
        Initialize the decoder.

        Args:
            num_classes: Number of class scores per slot (C)
            confidence_threshold: Minimum objectness * class score to keep
            early_reject_threshold: Objectness below this skips the class scan;
                                    defaults to confidence_threshold
        """
        if num_classes < 1:
            raise ValueError("num_classes must be at least 1")
        self.num_classes = num_classes
        self.confidence_threshold = confidence_threshold
        self.early_reject_threshold = (
            confidence_threshold if early_reject_threshold is None else early_reject_threshold
        )

    @property
    def stride(self) -> int:
        return SLOT_HEADER + self.num_classes

    def decode(self, buffer) -> List[RawDetection]:
        """
        Decode a raw output buffer.

        Args:
            buffer: Flat (or any-shaped) buffer of N x (5 + C) floats

        Returns:
            Accepted candidates in slot order (not sorted by confidence)
        """
        if buffer is None:
            return []
        arr = np.asarray(buffer, dtype=np.float32).ravel()
        if arr.size == 0:
            return []
        if arr.size % self.stride != 0:
            logging.debug(
                f"Output length {arr.size} is not a multiple of {self.stride}, ignoring buffer"
            )
            return []

        slots = arr.reshape(-1, self.stride)
        objectness = slots[:, 4]

        candidates = np.flatnonzero(objectness >= self.early_reject_threshold)
        if candidates.size == 0:
            return []

        scores = slots[candidates, SLOT_HEADER:]
        # argmax returns the first maximum, so ties go to the lowest class id
        best_ids = np.argmax(scores, axis=1)
        best_scores = scores[np.arange(candidates.size), best_ids]
        final = objectness[candidates] * best_scores
        keep = final >= self.confidence_threshold

        detections: List[RawDetection] = []
        for slot, class_id, confidence in zip(candidates[keep], best_ids[keep], final[keep]):
            x, y, w, h = slots[slot, :4]
            detections.append(
                RawDetection(
                    x=float(x),
                    y=float(y),
                    w=float(w),
                    h=float(h),
                    confidence=float(confidence),
                    class_id=int(class_id),
                )
            )
        return detections


def decode_output(
    buffer,
    num_classes: int,
    confidence_threshold: float,
    early_reject_threshold: Optional[float] = None,
) -> List[RawDetection]:
    """Functional wrapper around RawOutputDecoder."""
    return RawOutputDecoder(num_classes, confidence_threshold, early_reject_threshold).decode(buffer)
