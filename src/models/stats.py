"""
Read-only statistics snapshots returned by query operations.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class DetectionStats:
    """
    Statistics for the most recently recorded result batch.

    Attributes:
        total_detections: Results in the batch.
        critical_items_detected: Results that map to a critical class.
        critical_items_missing: Critical classes absent from the batch.
        average_confidence: Mean confidence of the batch (0 when empty).
        last_update_time: Unix timestamp of the update.
    """
    total_detections: int = 0
    critical_items_detected: int = 0
    critical_items_missing: int = 0
    average_confidence: float = 0.0
    last_update_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "critical_items_detected": self.critical_items_detected,
            "critical_items_missing": self.critical_items_missing,
            "average_confidence": self.average_confidence,
            "last_update_time": self.last_update_time,
        }


@dataclass(frozen=True)
class PerformanceMetrics:
    """Detection quality over recent history."""
    average_confidence: float = 0.0
    critical_detection_rate: float = 0.0
    total_detections: int = 0
    enhanced_mode_active: bool = False
    connected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_confidence": self.average_confidence,
            "critical_detection_rate": self.critical_detection_rate,
            "total_detections": self.total_detections,
            "enhanced_mode_active": self.enhanced_mode_active,
            "connected": self.connected,
        }


@dataclass(frozen=True)
class SchedulerSnapshot:
    """
    Frame scheduling statistics.

    Attributes:
        current_interval_ms: Minimum spacing between processed frames.
        in_flight: Whether a frame is being processed right now.
        consecutive_skips: Frames dropped since the last processed frame.
        total_skips: Frames dropped since the session started.
        frames_processed: Frames processed since the session started.
        last_latency_ms: Processing latency of the latest frame.
        average_latency_ms: Mean processing latency this session.
        is_mock: Whether the synthetic detector is in use.
    """
    current_interval_ms: float
    in_flight: bool = False
    consecutive_skips: int = 0
    total_skips: int = 0
    frames_processed: int = 0
    last_latency_ms: float = 0.0
    average_latency_ms: float = 0.0
    is_mock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_interval_ms": self.current_interval_ms,
            "in_flight": self.in_flight,
            "consecutive_skips": self.consecutive_skips,
            "total_skips": self.total_skips,
            "frames_processed": self.frames_processed,
            "last_latency_ms": self.last_latency_ms,
            "average_latency_ms": self.average_latency_ms,
            "is_mock": self.is_mock,
        }
