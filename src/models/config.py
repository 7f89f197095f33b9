"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ModelConfig:
    """Model artifact and inference engine configuration."""
    path: str = "models/detect.tflite"
    labels_path: Optional[str] = None
    input_size: int = 640
    num_classes: int = 80
    max_detections: int = 100
    num_threads: int = 4
    use_acceleration: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            path=d.get("path", "models/detect.tflite"),
            labels_path=d.get("labels_path"),
            input_size=d.get("input_size", 640),
            num_classes=d.get("num_classes", 80),
            max_detections=d.get("max_detections", 100),
            num_threads=d.get("num_threads", 4),
            use_acceleration=d.get("use_acceleration", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "path": self.path,
            "input_size": self.input_size,
            "num_classes": self.num_classes,
            "max_detections": self.max_detections,
            "num_threads": self.num_threads,
            "use_acceleration": self.use_acceleration,
        }
        if self.labels_path is not None:
            d["labels_path"] = self.labels_path
        return d


@dataclass
class ThresholdConfig:
    """Decode and suppression thresholds for one detection mode."""
    confidence_threshold: float = 0.5
    nms_threshold: float = 0.5
    early_reject_threshold: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], defaults: Optional["ThresholdConfig"] = None) -> "ThresholdConfig":
        base = defaults or cls()
        return cls(
            confidence_threshold=d.get("confidence_threshold", base.confidence_threshold),
            nms_threshold=d.get("nms_threshold", base.nms_threshold),
            early_reject_threshold=d.get("early_reject_threshold", base.early_reject_threshold),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "confidence_threshold": self.confidence_threshold,
            "nms_threshold": self.nms_threshold,
        }
        if self.early_reject_threshold is not None:
            d["early_reject_threshold"] = self.early_reject_threshold
        return d


def _enhanced_thresholds() -> ThresholdConfig:
    return ThresholdConfig(confidence_threshold=0.6, nms_threshold=0.4)


@dataclass
class EnsembleConfig:
    """Multi-scale ensemble configuration (enhanced mode only)."""
    enabled: bool = True
    scales: List[float] = field(default_factory=lambda: [0.8, 1.2])
    min_scaled_size: int = 320
    max_scaled_size: int = 1024
    damping: float = 0.9
    boost: float = 1.1
    bucket_size: float = 0.1
    trigger_cap: int = 10
    max_results: int = 10

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EnsembleConfig":
        return cls(
            enabled=d.get("enabled", True),
            scales=d.get("scales", [0.8, 1.2]),
            min_scaled_size=d.get("min_scaled_size", 320),
            max_scaled_size=d.get("max_scaled_size", 1024),
            damping=d.get("damping", 0.9),
            boost=d.get("boost", 1.1),
            bucket_size=d.get("bucket_size", 0.1),
            trigger_cap=d.get("trigger_cap", 10),
            max_results=d.get("max_results", 10),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "scales": self.scales,
            "min_scaled_size": self.min_scaled_size,
            "max_scaled_size": self.max_scaled_size,
            "damping": self.damping,
            "boost": self.boost,
            "bucket_size": self.bucket_size,
            "trigger_cap": self.trigger_cap,
            "max_results": self.max_results,
        }


@dataclass
class DetectionConfig:
    """Post-processing configuration for standard and enhanced modes."""
    standard: ThresholdConfig = field(default_factory=ThresholdConfig)
    enhanced: ThresholdConfig = field(default_factory=_enhanced_thresholds)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    enhance_contrast: bool = True
    max_frame_bytes: int = 20 * 1024 * 1024

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            standard=ThresholdConfig.from_dict(d.get("standard", {}) or {}),
            enhanced=ThresholdConfig.from_dict(d.get("enhanced", {}) or {}, defaults=_enhanced_thresholds()),
            ensemble=EnsembleConfig.from_dict(d.get("ensemble", {}) or {}),
            enhance_contrast=d.get("enhance_contrast", True),
            max_frame_bytes=d.get("max_frame_bytes", 20 * 1024 * 1024),
        )

    def thresholds(self, enhanced: bool) -> ThresholdConfig:
        return self.enhanced if enhanced else self.standard

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard": self.standard.to_dict(),
            "enhanced": self.enhanced.to_dict(),
            "ensemble": self.ensemble.to_dict(),
            "enhance_contrast": self.enhance_contrast,
            "max_frame_bytes": self.max_frame_bytes,
        }


@dataclass
class SchedulerConfig:
    """Adaptive frame interval configuration."""
    standard_interval_ms: float = 500.0
    enhanced_interval_ms: float = 300.0
    min_interval_ms: float = 200.0
    max_interval_ms: float = 5000.0
    latency_ceiling_ms: float = 100.0
    growth_factor: float = 1.2
    decay_factor: float = 0.9
    memory_penalty_factor: float = 1.5
    exhaustion_backoff_factor: float = 2.0
    memory_warning_bytes: int = 512 * 1024 * 1024

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            standard_interval_ms=d.get("standard_interval_ms", 500.0),
            enhanced_interval_ms=d.get("enhanced_interval_ms", 300.0),
            min_interval_ms=d.get("min_interval_ms", 200.0),
            max_interval_ms=d.get("max_interval_ms", 5000.0),
            latency_ceiling_ms=d.get("latency_ceiling_ms", 100.0),
            growth_factor=d.get("growth_factor", 1.2),
            decay_factor=d.get("decay_factor", 0.9),
            memory_penalty_factor=d.get("memory_penalty_factor", 1.5),
            exhaustion_backoff_factor=d.get("exhaustion_backoff_factor", 2.0),
            memory_warning_bytes=d.get("memory_warning_bytes", 512 * 1024 * 1024),
        )

    def initial_interval_ms(self, enhanced: bool) -> float:
        return self.enhanced_interval_ms if enhanced else self.standard_interval_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard_interval_ms": self.standard_interval_ms,
            "enhanced_interval_ms": self.enhanced_interval_ms,
            "min_interval_ms": self.min_interval_ms,
            "max_interval_ms": self.max_interval_ms,
            "latency_ceiling_ms": self.latency_ceiling_ms,
            "growth_factor": self.growth_factor,
            "decay_factor": self.decay_factor,
            "memory_penalty_factor": self.memory_penalty_factor,
            "exhaustion_backoff_factor": self.exhaustion_backoff_factor,
            "memory_warning_bytes": self.memory_warning_bytes,
        }


@dataclass
class SessionConfig:
    """Session statistics configuration."""
    success_confidence: float = 0.7
    max_history: int = 50

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SessionConfig":
        return cls(
            success_confidence=d.get("success_confidence", 0.7),
            max_history=d.get("max_history", 50),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_confidence": self.success_confidence,
            "max_history": self.max_history,
        }


@dataclass
class AlertConfig:
    """Alert policy configuration."""
    missing_streak_frames: int = 5
    low_confidence_streak_frames: int = 3
    cooldown_s: float = 60.0
    low_confidence_standard: float = 0.7
    low_confidence_enhanced: float = 0.75
    max_alerts: int = 20
    max_alerts_enhanced: int = 25

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AlertConfig":
        return cls(
            missing_streak_frames=d.get("missing_streak_frames", 5),
            low_confidence_streak_frames=d.get("low_confidence_streak_frames", 3),
            cooldown_s=d.get("cooldown_s", 60.0),
            low_confidence_standard=d.get("low_confidence_standard", 0.7),
            low_confidence_enhanced=d.get("low_confidence_enhanced", 0.75),
            max_alerts=d.get("max_alerts", 20),
            max_alerts_enhanced=d.get("max_alerts_enhanced", 25),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing_streak_frames": self.missing_streak_frames,
            "low_confidence_streak_frames": self.low_confidence_streak_frames,
            "cooldown_s": self.cooldown_s,
            "low_confidence_standard": self.low_confidence_standard,
            "low_confidence_enhanced": self.low_confidence_enhanced,
            "max_alerts": self.max_alerts,
            "max_alerts_enhanced": self.max_alerts_enhanced,
        }


@dataclass
class WebConfig:
    """Stats API server configuration."""
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", False),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 8000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    web: WebConfig = field(default_factory=WebConfig)
    enhanced_mode: bool = False
    connected: bool = False
    log_path: str = "logs/safety_detect.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            session=SessionConfig.from_dict(d.get("session", {}) or {}),
            alerts=AlertConfig.from_dict(d.get("alerts", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            enhanced_mode=d.get("enhanced_mode", False),
            connected=d.get("connected", False),
            log_path=d.get("log_path", "logs/safety_detect.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "model": self.model.to_dict(),
            "detection": self.detection.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "session": self.session.to_dict(),
            "alerts": self.alerts.to_dict(),
            "web": self.web.to_dict(),
            "enhanced_mode": self.enhanced_mode,
            "connected": self.connected,
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
