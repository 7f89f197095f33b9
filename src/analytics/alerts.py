"""
Alert policy and alert log.

The policy turns result batches into alerts using per-object streaks and a
per-key cooldown. The log keeps a bounded, newest-first list of alerts and
forwards each one to registered sinks.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence

from detection.class_mapper import resolve_label
from models.alert import AlertEvent, AlertSeverity
from models.config import AlertConfig
from models.detection import DetectionResult
from models.safety import SafetyObject

AlertSink = Callable[[str, AlertSeverity], None]


class AlertLog:
    """Bounded, newest-first alert list with pluggable sinks."""

    def __init__(self, max_alerts: int = 20):
        self._lock = threading.Lock()
        self._alerts: Deque[AlertEvent] = deque(maxlen=max_alerts)
        self._sinks: List[AlertSink] = []

    @property
    def capacity(self) -> int:
        return self._alerts.maxlen or 0

    def set_capacity(self, max_alerts: int) -> None:
        with self._lock:
            # newest are at the left; keep those
            self._alerts = deque(list(self._alerts)[:max_alerts], maxlen=max_alerts)

    def add_sink(self, sink: AlertSink) -> None:
        self._sinks.append(sink)

    def add(self, alert: AlertEvent) -> None:
        with self._lock:
            self._alerts.appendleft(alert)

        logging.info(f"[ALERT] {alert.severity.value}: {alert.message}")
        for sink in self._sinks:
            try:
                sink(alert.message, alert.severity)
            except Exception as e:
                logging.warning(f"Alert sink error: {e}")

    def alerts(self) -> List[AlertEvent]:
        with self._lock:
            return list(self._alerts)

    def dismiss(self, alert: AlertEvent) -> bool:
        with self._lock:
            try:
                self._alerts.remove(alert)
            except ValueError:
                return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()


class AlertPolicy:
    """
    Deterministic alerting from result batches.

    - A critical object missing for `missing_streak_frames` consecutive
      batches raises a HIGH alert.
    - A label seen below the low-confidence bar for
      `low_confidence_streak_frames` consecutive batches raises a MEDIUM
      alert (LOW in enhanced mode).

    Each alert key fires at most once per `cooldown_s`.
    """

    def __init__(self, config: Optional[AlertConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or AlertConfig()
        self._clock = clock
        self._missing_streaks: Dict[SafetyObject, int] = {}
        self._low_conf_streaks: Dict[str, int] = {}
        self._last_emitted: Dict[str, float] = {}

    def reset(self) -> None:
        self._missing_streaks.clear()
        self._low_conf_streaks.clear()
        self._last_emitted.clear()

    def low_confidence_bar(self, enhanced: bool) -> float:
        return self.config.low_confidence_enhanced if enhanced else self.config.low_confidence_standard

    def evaluate(self, results: Sequence[DetectionResult], enhanced: bool = False) -> List[AlertEvent]:
        """Update streaks with one batch and return the alerts it triggers."""
        now = self._clock()
        alerts: List[AlertEvent] = []

        seen = {resolve_label(r.label) for r in results}
        for obj in SafetyObject.critical():
            if obj in seen:
                self._missing_streaks[obj] = 0
                continue
            streak = self._missing_streaks.get(obj, 0) + 1
            self._missing_streaks[obj] = streak
            if streak >= self.config.missing_streak_frames and self._cooldown_ok(f"missing:{obj.name}", now):
                alerts.append(
                    AlertEvent(
                        message=f"{obj.display_name} not detected!",
                        severity=AlertSeverity.HIGH,
                        related_object=obj,
                    )
                )

        bar = self.low_confidence_bar(enhanced)
        weakest: Dict[str, DetectionResult] = {}
        for r in results:
            if r.confidence < bar and (r.label not in weakest or r.confidence < weakest[r.label].confidence):
                weakest[r.label] = r

        for label in list(self._low_conf_streaks):
            if label not in weakest:
                del self._low_conf_streaks[label]

        for label, r in weakest.items():
            streak = self._low_conf_streaks.get(label, 0) + 1
            self._low_conf_streaks[label] = streak
            if streak >= self.config.low_confidence_streak_frames and self._cooldown_ok(f"low_conf:{label}", now):
                alerts.append(
                    AlertEvent(
                        message=f"Low confidence detection: {label} ({int(r.confidence * 100)}%)",
                        severity=AlertSeverity.LOW if enhanced else AlertSeverity.MEDIUM,
                        related_object=resolve_label(label),
                    )
                )

        return alerts

    def _cooldown_ok(self, key: str, now: float) -> bool:
        last_sent = self._last_emitted.get(key)
        if last_sent is not None and (now - last_sent) < self.config.cooldown_s:
            return False
        self._last_emitted[key] = now
        return True
