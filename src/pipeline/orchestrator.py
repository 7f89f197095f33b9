"""
Detection orchestrator.

Owns the single detection lane: admits frames through the adaptive
scheduler, runs the detector under the inference lock, and publishes each
result batch to the session aggregator, the alert policy and listeners.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from analytics.alerts import AlertLog, AlertPolicy
from analytics.session import SessionAggregator
from detection.base import Detector
from inference.backend import OutcomeStatus
from inference.preprocess import is_valid_frame
from models.alert import AlertEvent, AlertSeverity
from models.config import Config
from models.detection import DetectionBatch, DetectionResult
from models.safety import SafetyObject
from models.session import SessionSnapshot
from models.stats import DetectionStats, PerformanceMetrics, SchedulerSnapshot
from ops.memory import read_process_memory_bytes, request_reclaim

from .scheduler import AdaptiveScheduler, AdmissionDecision

MEMORY_WARNING_MESSAGE = "Memory warning - detection slowed to preserve stability"

BatchListener = Callable[[DetectionBatch], None]


class OrchestratorState(str, Enum):
    IDLE = "idle"
    ADMITTING = "admitting"
    INFERRING = "inferring"
    POST_PROCESSING = "post_processing"


class DetectionOrchestrator:
    """
    Single-lane detection controller.

    Frames may be offered from any thread. At most one is processed at a
    time; the rest are dropped, never queued.

    Example:
        orchestrator = DetectionOrchestrator(detector, aggregator, config)
        orchestrator.start_session()
        for frame in frames:
            orchestrator.process_frame(frame)
        orchestrator.end_session()
    """

    def __init__(
        self,
        detector: Detector,
        aggregator: SessionAggregator,
        config: Optional[Config] = None,
        alert_log: Optional[AlertLog] = None,
        alert_policy: Optional[AlertPolicy] = None,
        memory_reader: Callable[[], Optional[int]] = read_process_memory_bytes,
        reclaim: Callable[[], object] = request_reclaim,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or Config()
        self.detector = detector
        self.aggregator = aggregator
        self.enhanced = self.config.enhanced_mode
        self.connected = self.config.connected
        self.alert_log = alert_log or AlertLog(self._alert_capacity())
        self.alert_policy = alert_policy or AlertPolicy(self.config.alerts)
        self.scheduler = AdaptiveScheduler(self.config.scheduler, enhanced=self.enhanced)

        self._memory_reader = memory_reader
        self._reclaim = reclaim
        self._clock = clock

        self._inference_lock = threading.Lock()
        self._session_active = False
        self._session_id = 0
        self._state = OrchestratorState.IDLE
        self._frame_index = 0
        self._last_results: List[DetectionResult] = []
        self._listeners: List[BatchListener] = []

    # --- Observability ---

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def session_active(self) -> bool:
        return self._session_active

    @property
    def is_mock(self) -> bool:
        return self.detector.is_mock

    def add_listener(self, callback: BatchListener) -> None:
        """
        Add a callback to be called with each published DetectionBatch.

        Args:
            callback: Function taking the batch as its only argument.
        """
        self._listeners.append(callback)

    # --- Session lifecycle ---

    def start_session(self) -> None:
        with self._inference_lock:
            self.scheduler.reset(self.enhanced)
            self.alert_policy.reset()
            self.aggregator.start_session()
            self._last_results = []
            self._frame_index = 0
            self._session_id += 1
            self._session_active = True

        message = "Enhanced detection session started" if self.enhanced else "Detection session started"
        self._raise_alert(AlertEvent(message=message, severity=AlertSeverity.INFO))

    def end_session(self) -> Optional[SessionSnapshot]:
        """Stop admitting frames, wait for the in-flight one, then finalize."""
        if not self._session_active:
            return None
        self._session_active = False

        with self._inference_lock:
            snapshot = self.aggregator.end_session(self._last_results)

        total = self.aggregator.current_stats().total_detections
        self._raise_alert(
            AlertEvent(
                message=f"Detection session ended - {total} items detected",
                severity=AlertSeverity.INFO,
            )
        )
        return snapshot

    def set_enhanced_mode(self, enabled: bool) -> None:
        """Switch detection mode; takes effect from the next frame."""
        with self._inference_lock:
            self.enhanced = enabled
            self.scheduler.set_mode(enabled)
            self.alert_log.set_capacity(self._alert_capacity())
        logging.info(f"Enhanced mode {'enabled' if enabled else 'disabled'}")

    # --- Frame processing ---

    def process_frame(self, frame: np.ndarray) -> Optional[List[DetectionResult]]:
        """
        Offer a frame to the detection lane.

        Returns:
            The published results, or None if no batch was published for
            this frame
        """
        session_id = self._session_id
        now_ms = self._clock() * 1000.0
        valid = is_valid_frame(frame, self.config.detection.max_frame_bytes)
        decision = self.scheduler.try_admit(now_ms, self._session_active, valid)
        if decision is not AdmissionDecision.ADMITTED:
            logging.debug(f"Frame skipped: {decision.value}")
            return None

        with self._inference_lock:
            try:
                # session ended or restarted after admission
                if not self._session_active or self._session_id != session_id:
                    logging.debug("Frame dropped: session ended while waiting")
                    return None
                return self._run_admitted(frame)
            except MemoryError as e:
                self._handle_exhaustion(str(e) or "MemoryError")
                return None
            finally:
                self.scheduler.release()
                self._state = OrchestratorState.IDLE

    def _run_admitted(self, frame: np.ndarray) -> Optional[List[DetectionResult]]:
        self._state = OrchestratorState.ADMITTING
        enhanced = self.enhanced
        started = self._clock()

        self._state = OrchestratorState.INFERRING
        outcome = self.detector.detect(frame, enhanced=enhanced)

        self._state = OrchestratorState.POST_PROCESSING
        if outcome.status is OutcomeStatus.RESOURCE_EXHAUSTED:
            self._handle_exhaustion(outcome.error)
            return None

        results = list(outcome.results)
        if outcome.status is OutcomeStatus.FAILED:
            logging.warning(f"Detection failed, publishing empty result: {outcome.error}")
            results = []

        latency_ms = (self._clock() - started) * 1000.0
        interval = self.scheduler.finish(latency_ms)
        if self.scheduler.apply_memory_pressure(self._memory_reader()):
            self._reclaim()
        logging.debug(f"Frame {self._frame_index}: {len(results)} results in {latency_ms:.1f} ms, next interval {interval:.0f} ms")

        batch = DetectionBatch(
            frame_index=self._frame_index,
            timestamp=time.time(),
            results=tuple(results),
            latency_ms=latency_ms,
            is_mock=self.detector.is_mock,
            enhanced=enhanced,
            scales_used=outcome.scales_used,
        )
        self._frame_index += 1
        self._publish(batch)
        return results

    def _publish(self, batch: DetectionBatch) -> None:
        self._last_results = list(batch.results)
        self.aggregator.record(batch.results)

        for alert in self.alert_policy.evaluate(batch.results, enhanced=batch.enhanced):
            self._raise_alert(alert)

        for callback in self._listeners:
            try:
                callback(batch)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _handle_exhaustion(self, error: Optional[str]) -> None:
        interval = self.scheduler.back_off(self.config.scheduler.exhaustion_backoff_factor)
        self._reclaim()
        self.aggregator.trim_history()
        logging.warning(f"Out of memory during detection ({error}), frame interval now {interval:.0f} ms")
        self._raise_alert(AlertEvent(message=MEMORY_WARNING_MESSAGE, severity=AlertSeverity.LOW))

    def _raise_alert(self, alert: AlertEvent) -> None:
        self.alert_log.add(alert)

    def _alert_capacity(self) -> int:
        return self.config.alerts.max_alerts_enhanced if self.enhanced else self.config.alerts.max_alerts

    # --- Queries ---

    def current_stats(self) -> DetectionStats:
        return self.aggregator.current_stats()

    def missing_critical_items(self) -> List[SafetyObject]:
        return self.aggregator.critical_missing()

    def safety_percentage(self) -> int:
        return self.aggregator.safety_percentage()

    def performance_metrics(self) -> PerformanceMetrics:
        return self.aggregator.performance_metrics(enhanced=self.enhanced, connected=self.connected)

    def scheduler_snapshot(self) -> SchedulerSnapshot:
        return self.scheduler.snapshot(is_mock=self.detector.is_mock)

    def alerts(self) -> List[AlertEvent]:
        return self.alert_log.alerts()

    def close(self) -> None:
        if self._session_active:
            self.end_session()
        with self._inference_lock:
            self.detector.close()
        logging.info("Detection orchestrator closed")


def create_orchestrator_from_config(
    config: Config,
    detector: Detector,
    aggregator: Optional[SessionAggregator] = None,
    alert_log: Optional[AlertLog] = None,
) -> DetectionOrchestrator:
    """
    Factory function to create a DetectionOrchestrator from typed config.

    Args:
        config: Full application config.
        detector: Model-backed or synthetic detector.
        aggregator: Shared session aggregator (a new one if omitted).
        alert_log: Shared alert log (a new one if omitted).
    """
    aggregator = aggregator or SessionAggregator(config.session)
    return DetectionOrchestrator(
        detector=detector,
        aggregator=aggregator,
        config=config,
        alert_log=alert_log,
        alert_policy=AlertPolicy(config.alerts),
    )
