"""
Detection interfaces.

Two strategies implement the same interface:
- ModelDetector: real inference + decode + NMS + class mapping (+ ensemble)
- SyntheticDetector: plausible random results when no model is available
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from inference.backend import OutcomeStatus
from models.detection import DetectionResult


@dataclass(frozen=True)
class DetectionOutcome:
    """Results of one frame, or why there are none."""
    status: OutcomeStatus
    results: Tuple[DetectionResult, ...] = ()
    scales_used: Tuple[float, ...] = (1.0,)
    error: Optional[str] = None

    @classmethod
    def ok(cls, results, scales_used=(1.0,)) -> "DetectionOutcome":
        return cls(status=OutcomeStatus.OK, results=tuple(results), scales_used=tuple(scales_used))

    @classmethod
    def failed(cls, error: Optional[str]) -> "DetectionOutcome":
        return cls(status=OutcomeStatus.FAILED, error=error)

    @classmethod
    def exhausted(cls, error: Optional[str]) -> "DetectionOutcome":
        return cls(status=OutcomeStatus.RESOURCE_EXHAUSTED, error=error)


class Detector:
    """Detector interface returning normalized safety-object results."""

    is_mock: bool = False

    def detect(self, frame: np.ndarray, enhanced: bool = False) -> DetectionOutcome:
        raise NotImplementedError

    def close(self) -> None:
        pass
