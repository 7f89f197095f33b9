"""
Adaptive frame scheduler.

Decides which incoming frames get processed. At most one frame is in
flight; frames arriving too soon after the last processed one are dropped.
The spacing adapts to observed latency and memory pressure.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models.config import SchedulerConfig
from models.stats import SchedulerSnapshot


class AdmissionDecision(str, Enum):
    ADMITTED = "admitted"
    IN_FLIGHT = "in_flight"
    TOO_SOON = "too_soon"
    SESSION_INACTIVE = "session_inactive"
    INVALID_FRAME = "invalid_frame"


@dataclass
class AdaptiveSchedulerState:
    """
    Mutable scheduling state. Owned by AdaptiveScheduler, guarded by its lock.

    last_processed_at_ms is None until the first frame is admitted.
    """
    current_interval_ms: float
    last_processed_at_ms: Optional[float] = None
    in_flight: bool = False
    consecutive_skips: int = 0
    total_skips: int = 0
    frames_processed: int = 0
    last_latency_ms: float = 0.0
    total_latency_ms: float = 0.0


class AdaptiveScheduler:
    """
    Admission control and interval adaptation for the detection lane.

    Example:
        scheduler = AdaptiveScheduler(SchedulerConfig())
        if scheduler.try_admit(now_ms, session_active=True, frame_valid=True) is AdmissionDecision.ADMITTED:
            try:
                ...
                scheduler.finish(latency_ms)
            finally:
                scheduler.release()
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, enhanced: bool = False):
        self.config = config or SchedulerConfig()
        self._lock = threading.Lock()
        self._state = AdaptiveSchedulerState(current_interval_ms=self._clamp(self.config.initial_interval_ms(enhanced)))

    def _clamp(self, interval_ms: float) -> float:
        return max(self.config.min_interval_ms, min(self.config.max_interval_ms, interval_ms))

    @property
    def current_interval_ms(self) -> float:
        with self._lock:
            return self._state.current_interval_ms

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._state.in_flight

    def reset(self, enhanced: bool = False) -> None:
        """Start fresh for a new session (keeps nothing)."""
        with self._lock:
            self._state = AdaptiveSchedulerState(
                current_interval_ms=self._clamp(self.config.initial_interval_ms(enhanced))
            )

    def set_mode(self, enhanced: bool) -> None:
        with self._lock:
            self._state.current_interval_ms = self._clamp(self.config.initial_interval_ms(enhanced))

    def _decide(self, now_ms: float, session_active: bool, frame_valid: bool) -> AdmissionDecision:
        s = self._state
        if s.in_flight:
            return AdmissionDecision.IN_FLIGHT
        if not session_active:
            return AdmissionDecision.SESSION_INACTIVE
        if not frame_valid:
            return AdmissionDecision.INVALID_FRAME
        if s.last_processed_at_ms is not None and now_ms - s.last_processed_at_ms < s.current_interval_ms:
            return AdmissionDecision.TOO_SOON
        return AdmissionDecision.ADMITTED

    def try_admit(self, now_ms: float, session_active: bool, frame_valid: bool) -> AdmissionDecision:
        """Admission test-and-set: admitted frames are marked in flight atomically."""
        with self._lock:
            decision = self._decide(now_ms, session_active, frame_valid)
            if decision is AdmissionDecision.ADMITTED:
                self._state.in_flight = True
                self._state.last_processed_at_ms = now_ms
            else:
                self._state.consecutive_skips += 1
                self._state.total_skips += 1
            return decision

    def finish(self, latency_ms: float) -> float:
        """
        Record a processed frame's latency and adapt the interval.

        Returns:
            The new interval in milliseconds
        """
        cfg = self.config
        with self._lock:
            s = self._state
            s.frames_processed += 1
            s.last_latency_ms = latency_ms
            s.total_latency_ms += latency_ms
            s.consecutive_skips = 0

            interval = s.current_interval_ms
            if latency_ms > cfg.latency_ceiling_ms:
                interval *= cfg.growth_factor
            elif latency_ms < cfg.latency_ceiling_ms / 2 and interval > cfg.min_interval_ms:
                interval *= cfg.decay_factor
            s.current_interval_ms = self._clamp(interval)
            return s.current_interval_ms

    def back_off(self, factor: float) -> float:
        with self._lock:
            self._state.current_interval_ms = self._clamp(self._state.current_interval_ms * factor)
            return self._state.current_interval_ms

    def apply_memory_pressure(self, used_bytes: Optional[int]) -> bool:
        """Slow down if memory use is above the warning level. Returns True if it did."""
        if used_bytes is None or used_bytes <= self.config.memory_warning_bytes:
            return False
        interval = self.back_off(self.config.memory_penalty_factor)
        logging.warning(
            f"Memory usage {used_bytes / (1024 * 1024):.0f} MiB above warning level, "
            f"frame interval now {interval:.0f} ms"
        )
        return True

    def release(self) -> None:
        """Clear the in-flight flag (always called when a frame leaves the lane)."""
        with self._lock:
            self._state.in_flight = False

    def snapshot(self, is_mock: bool = False) -> SchedulerSnapshot:
        with self._lock:
            s = self._state
            return SchedulerSnapshot(
                current_interval_ms=s.current_interval_ms,
                in_flight=s.in_flight,
                consecutive_skips=s.consecutive_skips,
                total_skips=s.total_skips,
                frames_processed=s.frames_processed,
                last_latency_ms=s.last_latency_ms,
                average_latency_ms=(s.total_latency_ms / s.frames_processed) if s.frames_processed else 0.0,
                is_mock=is_mock,
            )
