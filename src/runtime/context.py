from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from analytics.alerts import AlertLog
from analytics.session import SessionAggregator
from detection.base import Detector
from detection.model_detector import ModelDetector
from detection.synthetic import SyntheticDetector
from inference.backend import EngineConfig, InferenceEngine, InferenceRunner, ModelLoadError
from inference.model_store import ModelStore
from models.config import Config
from pipeline.orchestrator import DetectionOrchestrator, create_orchestrator_from_config


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    orchestrator: DetectionOrchestrator
    aggregator: SessionAggregator
    alert_log: AlertLog

    # Observability
    system_stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def detector(self) -> Detector:
        return self.orchestrator.detector

    def update_system_stats(self, **kwargs: Any) -> None:
        self.system_stats.update(kwargs)

    def get_system_stats_copy(self) -> Dict[str, Any]:
        return dict(self.system_stats)


def create_detector(config: Config, engine: Optional[InferenceEngine] = None) -> Detector:
    """
    Build the model-backed detector, or the synthetic one if the model or
    inference engine is unavailable.
    """
    artifact = ModelStore(config.model).load()
    if artifact is None:
        return SyntheticDetector()

    if engine is None:
        try:
            from inference.tflite_backend import TFLiteEngine

            engine = TFLiteEngine()
        except ImportError as e:
            logging.warning(f"{e} Falling back to synthetic detection.")
            return SyntheticDetector()

    runner = InferenceRunner(
        engine,
        EngineConfig(num_threads=config.model.num_threads, use_acceleration=config.model.use_acceleration),
    )
    try:
        runner.open(artifact.model_bytes)
    except ModelLoadError as e:
        logging.warning(f"{e}. Falling back to synthetic detection.")
        return SyntheticDetector()

    return ModelDetector(runner, config.model, config.detection, labels=artifact.labels)


def build_runtime(config: Config, engine: Optional[InferenceEngine] = None) -> RuntimeContext:
    """Wire detector, aggregator, alert log and orchestrator from config."""
    detector = create_detector(config, engine)
    aggregator = SessionAggregator(config.session)
    alert_log = AlertLog(config.alerts.max_alerts_enhanced if config.enhanced_mode else config.alerts.max_alerts)
    orchestrator = create_orchestrator_from_config(config, detector, aggregator, alert_log)

    mode = "synthetic" if detector.is_mock else "model"
    logging.info(f"Runtime ready: detector={mode}, enhanced={config.enhanced_mode}")
    return RuntimeContext(
        config=config,
        orchestrator=orchestrator,
        aggregator=aggregator,
        alert_log=alert_log,
        system_stats={"detector": mode},
    )
