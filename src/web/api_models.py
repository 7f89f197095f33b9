from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SchedulerInfo(BaseModel):
    current_interval_ms: float
    in_flight: bool
    consecutive_skips: int
    total_skips: int
    frames_processed: int
    last_latency_ms: float
    average_latency_ms: float
    is_mock: bool


class HealthResponse(BaseModel):
    status: str = Field(..., description="running|idle|degraded")
    timestamp: float
    uptime_seconds: int
    platform: str
    python: str
    cwd: str
    model_path: str
    log_path: str
    is_mock: bool
    session_active: bool
    enhanced_mode: bool
    memory_bytes: Optional[int] = None
    memory_warning_bytes: int
    scheduler: SchedulerInfo


class StatsResponse(BaseModel):
    """
    Live session view, optimized for dashboard polling.
    """
    total_detections: int = Field(..., description="Results in the latest batch")
    critical_items_detected: int
    critical_items_missing: int
    average_confidence: float
    last_update_time: float
    safety_percentage: int = Field(..., description="Share of safety classes seen this session")
    overall_accuracy: float = Field(..., description="Percent of results at or above the success bar")
    detected_items: List[str]
    session_active: bool
    is_mock: bool


class MissingItem(BaseModel):
    name: str
    display_name: str
    is_critical: bool


class MissingItemsResponse(BaseModel):
    missing: List[MissingItem]
    critical_missing: List[MissingItem]


class ClassStatsEntry(BaseModel):
    total_detections: int
    average_confidence: float
    successful_detections: int
    last_seen: Optional[float] = None


class ClassStatsResponse(BaseModel):
    classes: Dict[str, ClassStatsEntry]


class BoundingBoxModel(BaseModel):
    left: float
    top: float
    right: float
    bottom: float


class DetectionModel(BaseModel):
    id: str
    label: str
    confidence: float
    bounding_box: BoundingBoxModel
    is_mock: bool = False


class SessionModel(BaseModel):
    started_at: float
    ended_at: float
    duration_s: float
    detections: List[DetectionModel]
    unique_items: List[str]
    frames_processed: int


class SessionsResponse(BaseModel):
    sessions: List[SessionModel]


class PerformanceResponse(BaseModel):
    average_confidence: float
    critical_detection_rate: float
    total_detections: int
    enhanced_mode_active: bool
    connected: bool
    scheduler: SchedulerInfo


class AlertModel(BaseModel):
    message: str
    severity: str
    related_object: Optional[str] = None
    timestamp: float


class AlertsResponse(BaseModel):
    alerts: List[AlertModel]
