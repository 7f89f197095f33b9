"""
Session models: live session state, per-class statistics and history entries.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple

from .detection import DetectionResult
from .safety import SafetyObject


@dataclass(frozen=True)
class ClassStats:
    """
    Long-run statistics for one safety object class.

    Attributes:
        total_detections: Number of results mapped to this class.
        cumulative_confidence: Sum of their confidences.
        successful_detections: Results at or above the success bar.
        last_seen: Unix timestamp of the latest result.
    """
    total_detections: int = 0
    cumulative_confidence: float = 0.0
    successful_detections: int = 0
    last_seen: Optional[float] = None

    @property
    def average_confidence(self) -> float:
        if self.total_detections == 0:
            return 0.0
        return self.cumulative_confidence / self.total_detections

    def add(self, confidence: float, success_bar: float, now: float) -> "ClassStats":
        """Return updated stats including one more result."""
        return ClassStats(
            total_detections=self.total_detections + 1,
            cumulative_confidence=self.cumulative_confidence + confidence,
            successful_detections=self.successful_detections + (1 if confidence >= success_bar else 0),
            last_seen=now,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "average_confidence": self.average_confidence,
            "successful_detections": self.successful_detections,
            "last_seen": self.last_seen,
        }


@dataclass
class DetectionSession:
    """
    Live session state. Owned and mutated only by the SessionAggregator.
    """
    started_at: float = field(default_factory=time.time)
    seen: Set[SafetyObject] = field(default_factory=set)
    batches: int = 0
    detections: int = 0


@dataclass(frozen=True)
class SessionSnapshot:
    """
    A finalized session, as kept in history.

    Attributes:
        started_at: Unix timestamp when the session started.
        ended_at: Unix timestamp when the session ended.
        detections: Final results reported for the session.
        unique_items: Safety objects seen during the session.
        frames_processed: Result batches recorded during the session.
    """
    started_at: float
    ended_at: float
    detections: Tuple[DetectionResult, ...] = ()
    unique_items: Tuple[SafetyObject, ...] = ()
    frames_processed: int = 0

    @property
    def duration_s(self) -> float:
        return max(0.0, self.ended_at - self.started_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_s": self.duration_s,
            "detections": [d.to_dict() for d in self.detections],
            "unique_items": [o.name for o in self.unique_items],
            "frames_processed": self.frames_processed,
        }
