"""
Session aggregation: long-run per-class statistics, the live session's seen
set, and a bounded history of finalized sessions.

A single SessionAggregator is owned by the runtime context and shared by the
orchestrator and the stats API.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from detection.class_mapper import resolve_label
from models.config import SessionConfig
from models.detection import DetectionResult
from models.safety import SafetyObject
from models.session import ClassStats, DetectionSession, SessionSnapshot
from models.stats import DetectionStats, PerformanceMetrics


class SessionAggregator:
    """
    Accumulates detection results across frames and sessions.

    All public methods are thread-safe and return immutable snapshots.
    """

    def __init__(self, config: Optional[SessionConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config or SessionConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._session = DetectionSession(started_at=clock())
        self._class_stats: Dict[SafetyObject, ClassStats] = {}
        self._history: List[SessionSnapshot] = []
        self._latest_results: Tuple[DetectionResult, ...] = ()
        self._latest_stats = DetectionStats(last_update_time=self._session.started_at)
        self._total_scans = 0
        self._unmapped = 0

    # --- Session lifecycle ---

    def start_session(self) -> None:
        """Begin a new session. Long-run class statistics are kept."""
        with self._lock:
            self._session = DetectionSession(started_at=self._clock())
            self._latest_results = ()
        logging.info("Detection session started")

    def record(self, results: Sequence[DetectionResult]) -> DetectionStats:
        """Record one published result batch; returns the batch statistics."""
        now = self._clock()
        with self._lock:
            self._total_scans += 1
            self._session.batches += 1

            batch_objects: List[SafetyObject] = []
            for result in results:
                obj = resolve_label(result.label)
                if obj is None:
                    self._unmapped += 1
                    continue
                batch_objects.append(obj)
                self._session.seen.add(obj)
                self._session.detections += 1
                stats = self._class_stats.get(obj, ClassStats())
                self._class_stats[obj] = stats.add(result.confidence, self.config.success_confidence, now)

            self._latest_results = tuple(results)
            self._latest_stats = self._batch_stats(results, batch_objects, now)
            return self._latest_stats

    def end_session(self, final_results: Optional[Sequence[DetectionResult]] = None) -> SessionSnapshot:
        """
        Finalize the current session into history.

        Args:
            final_results: Results to keep with the snapshot; defaults to the
                           latest recorded batch
        """
        with self._lock:
            detections = tuple(final_results) if final_results is not None else self._latest_results
            snapshot = SessionSnapshot(
                started_at=self._session.started_at,
                ended_at=self._clock(),
                detections=detections,
                unique_items=tuple(o for o in SafetyObject if o in self._session.seen),
                frames_processed=self._session.batches,
            )
            self._history.insert(0, snapshot)
            del self._history[self.config.max_history:]

        logging.info(
            f"Detection session ended: {len(snapshot.unique_items)} unique items, "
            f"{snapshot.frames_processed} frames in {snapshot.duration_s:.1f}s"
        )
        return snapshot

    # --- Queries ---

    def overall_accuracy(self) -> float:
        """Percentage of results at or above the success bar (0 when empty)."""
        with self._lock:
            total = sum(s.total_detections for s in self._class_stats.values())
            successful = sum(s.successful_detections for s in self._class_stats.values())
        if total == 0:
            return 0.0
        return successful / total * 100.0

    def safety_percentage(self) -> int:
        """Share of all safety object classes seen this session, floored."""
        with self._lock:
            seen = len(self._session.seen)
        return seen * 100 // len(SafetyObject)

    def detected_items(self) -> List[SafetyObject]:
        with self._lock:
            return [o for o in SafetyObject if o in self._session.seen]

    def missing_items(self) -> List[SafetyObject]:
        with self._lock:
            return [o for o in SafetyObject if o not in self._session.seen]

    def critical_missing(self) -> List[SafetyObject]:
        return [o for o in self.missing_items() if o.is_critical]

    def class_stats(self) -> Dict[SafetyObject, ClassStats]:
        with self._lock:
            return dict(self._class_stats)

    def history(self) -> Tuple[SessionSnapshot, ...]:
        """Finalized sessions, most recent first."""
        with self._lock:
            return tuple(self._history)

    def recent_detections(self, max_results: int = 100) -> List[DetectionResult]:
        """Detections from the most recent sessions, newest session first."""
        sessions = max(1, max_results // 10)
        with self._lock:
            out: List[DetectionResult] = []
            for snapshot in self._history[:sessions]:
                out.extend(snapshot.detections)
        return out[:max_results]

    def latest_results(self) -> Tuple[DetectionResult, ...]:
        with self._lock:
            return self._latest_results

    def current_stats(self) -> DetectionStats:
        with self._lock:
            return self._latest_stats

    def performance_metrics(self, enhanced: bool = False, connected: bool = False) -> PerformanceMetrics:
        recent = self.recent_detections(50)
        if not recent:
            return PerformanceMetrics(enhanced_mode_active=enhanced, connected=connected)

        critical = 0
        for result in recent:
            obj = resolve_label(result.label)
            if obj is not None and obj.is_critical:
                critical += 1

        return PerformanceMetrics(
            average_confidence=sum(r.confidence for r in recent) / len(recent),
            critical_detection_rate=critical / len(recent),
            total_detections=len(recent),
            enhanced_mode_active=enhanced,
            connected=connected,
        )

    @property
    def total_scans(self) -> int:
        with self._lock:
            return self._total_scans

    @property
    def unmapped_count(self) -> int:
        with self._lock:
            return self._unmapped

    # --- Maintenance ---

    def trim_history(self, keep: int = 0) -> int:
        """Drop finalized sessions beyond `keep`; returns how many were dropped."""
        with self._lock:
            dropped = max(0, len(self._history) - keep)
            del self._history[keep:]
        if dropped:
            logging.info(f"Trimmed {dropped} sessions from history")
        return dropped

    def clear(self) -> None:
        """Reset everything, including long-run statistics and history."""
        with self._lock:
            self._session = DetectionSession(started_at=self._clock())
            self._class_stats.clear()
            self._history.clear()
            self._latest_results = ()
            self._latest_stats = DetectionStats(last_update_time=self._session.started_at)
            self._total_scans = 0
            self._unmapped = 0

    @staticmethod
    def _batch_stats(
        results: Sequence[DetectionResult],
        objects: Sequence[SafetyObject],
        now: float,
    ) -> DetectionStats:
        critical_seen = {o for o in objects if o.is_critical}
        return DetectionStats(
            total_detections=len(results),
            critical_items_detected=sum(1 for o in objects if o.is_critical),
            critical_items_missing=len(SafetyObject.critical()) - len(critical_seen),
            average_confidence=(sum(r.confidence for r in results) / len(results)) if results else 0.0,
            last_update_time=now,
        )
