"""
Detection models for object detection results.

All coordinates here are normalized to the [0, 1] image space.
"""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

_id_counter = itertools.count()


def new_result_id(prefix: str = "det") -> str:
    """Opaque id unique within the process: prefix, wall-clock ms and a sequence number."""
    return f"{prefix}_{int(time.time() * 1000)}_{next(_id_counter)}"


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, float(v)))


@dataclass(frozen=True)
class BoundingBox:
    """
    A corner-form bounding box in normalized coordinates.

    Attributes:
        left: Left edge (0-1).
        top: Top edge (0-1).
        right: Right edge (0-1).
        bottom: Bottom edge (0-1).
    """
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.left + self.right) / 2, (self.top + self.bottom) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (left, top, right, bottom) tuple."""
        return (self.left, self.top, self.right, self.bottom)

    @classmethod
    def clamped(cls, left: float, top: float, right: float, bottom: float) -> "BoundingBox":
        """Create a box clamped to [0, 1] with left<=right and top<=bottom."""
        l, r = sorted((_clamp01(left), _clamp01(right)))
        t, b = sorted((_clamp01(top), _clamp01(bottom)))
        return cls(left=l, top=t, right=r, bottom=b)

    @classmethod
    def from_center(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from center-form (x, y, w, h), clamped to the image."""
        return cls.clamped(x - w / 2, y - h / 2, x + w / 2, y + h / 2)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoundingBox":
        return cls(
            left=d.get("left", 0.0),
            top=d.get("top", 0.0),
            right=d.get("right", 0.0),
            bottom=d.get("bottom", 0.0),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
        }


@dataclass(frozen=True)
class RawDetection:
    """
    Intermediate decoder output, before suppression and class mapping.

    Attributes:
        x: Box center x (normalized).
        y: Box center y (normalized).
        w: Box width (normalized).
        h: Box height (normalized).
        confidence: objectness * best class score.
        class_id: Index of the best-scoring class.
    """
    x: float
    y: float
    w: float
    h: float
    confidence: float
    class_id: int

    def to_box(self) -> BoundingBox:
        return BoundingBox.from_center(self.x, self.y, self.w, self.h)


@dataclass(frozen=True)
class DetectionResult:
    """
    The stable output unit handed to consumers.

    Attributes:
        id: Opaque unique identifier.
        label: Safety object display name.
        confidence: Detection confidence (0-1).
        bounding_box: Normalized, clamped box.
        is_mock: True when produced by the synthetic detector.
    """
    id: str
    label: str
    confidence: float
    bounding_box: BoundingBox
    is_mock: bool = False

    def with_confidence(self, confidence: float) -> "DetectionResult":
        """Copy with a new confidence clamped to [0, 1]."""
        return DetectionResult(
            id=self.id,
            label=self.label,
            confidence=_clamp01(confidence),
            bounding_box=self.bounding_box,
            is_mock=self.is_mock,
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionResult":
        return cls(
            id=d["id"],
            label=d["label"],
            confidence=d.get("confidence", 0.0),
            bounding_box=BoundingBox.from_dict(d.get("bounding_box", {})),
            is_mock=d.get("is_mock", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "label": self.label,
            "confidence": self.confidence,
            "bounding_box": self.bounding_box.to_dict(),
            "is_mock": self.is_mock,
        }


@dataclass(frozen=True)
class DetectionBatch:
    """Results of one processed frame, as published to listeners."""
    frame_index: int
    timestamp: float
    results: Tuple[DetectionResult, ...] = ()
    latency_ms: float = 0.0
    is_mock: bool = False
    enhanced: bool = False
    scales_used: Tuple[float, ...] = field(default_factory=lambda: (1.0,))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_index": self.frame_index,
            "timestamp": self.timestamp,
            "results": [r.to_dict() for r in self.results],
            "latency_ms": self.latency_ms,
            "is_mock": self.is_mock,
            "enhanced": self.enhanced,
            "scales_used": list(self.scales_used),
        }

