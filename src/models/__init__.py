"""
Typed models for the safety detection core.

Records convert to and from plain dicts with to_dict/from_dict.
"""

from .detection import BoundingBox, RawDetection, DetectionResult, DetectionBatch
from .safety import SafetyObject
from .alert import AlertEvent, AlertSeverity
from .session import ClassStats, DetectionSession, SessionSnapshot
from .stats import DetectionStats, PerformanceMetrics, SchedulerSnapshot
from .config import (
    Config,
    ModelConfig,
    ThresholdConfig,
    DetectionConfig,
    EnsembleConfig,
    SchedulerConfig,
    SessionConfig,
    AlertConfig,
    WebConfig,
)

__all__ = [
    # Detection
    "BoundingBox",
    "RawDetection",
    "DetectionResult",
    "DetectionBatch",
    # Taxonomy
    "SafetyObject",
    # Alerts
    "AlertEvent",
    "AlertSeverity",
    # Session
    "ClassStats",
    "DetectionSession",
    "SessionSnapshot",
    # Stats
    "DetectionStats",
    "PerformanceMetrics",
    "SchedulerSnapshot",
    # Config
    "Config",
    "ModelConfig",
    "ThresholdConfig",
    "DetectionConfig",
    "EnsembleConfig",
    "SchedulerConfig",
    "SessionConfig",
    "AlertConfig",
    "WebConfig",
]
