"""
Synthetic detector used when no model is available.

Produces a few plausible results per frame, each a distinct safety object,
flagged is_mock so consumers can tell them apart from real detections.
"""

from __future__ import annotations

import time
from typing import List, Optional

import numpy as np

from models.detection import BoundingBox, DetectionResult, new_result_id
from models.safety import SafetyObject

from .base import DetectionOutcome, Detector


class SyntheticDetector(Detector):
    """
    Random safety-object generator.

    Standard mode yields 1-3 results with confidence in [0.65, 0.85);
    enhanced mode yields 2-5 results with confidence in [0.75, 0.95).
    """

    is_mock = True

    def __init__(self, rng: Optional[np.random.Generator] = None, seed: Optional[int] = None):
        if rng is None:
            rng = np.random.default_rng(seed if seed is not None else time.time_ns())
        self.rng = rng

    def detect(self, frame: np.ndarray, enhanced: bool = False) -> DetectionOutcome:
        return DetectionOutcome.ok(self.generate(enhanced))

    def generate(self, enhanced: bool = False) -> List[DetectionResult]:
        low, high = (2, 6) if enhanced else (1, 4)
        count = int(self.rng.integers(low, high))
        base_conf = 0.75 if enhanced else 0.65

        objects = list(SafetyObject)
        order = self.rng.permutation(len(objects))

        results: List[DetectionResult] = []
        for idx in order[:count]:
            obj = objects[int(idx)]
            left = float(self.rng.random()) * 0.6
            top = float(self.rng.random()) * 0.6
            width = 0.15 + float(self.rng.random()) * 0.15
            height = 0.15 + float(self.rng.random()) * 0.15
            results.append(
                DetectionResult(
                    id=new_result_id("mock"),
                    label=obj.display_name,
                    confidence=base_conf + float(self.rng.random()) * 0.2,
                    bounding_box=BoundingBox.clamped(left, top, left + width, top + height),
                    is_mock=True,
                )
            )
        return results
