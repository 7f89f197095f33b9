"""
Model-backed detector.

One frame goes through: preprocess -> inference -> decode -> NMS -> class
mapping. In enhanced mode, when the base pass finds few objects, extra
rescaled passes are merged in by the EnsembleMerger.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from inference.backend import InferenceRunner, OutcomeStatus
from inference.preprocess import Preprocessor
from models.config import DetectionConfig, ModelConfig
from models.detection import DetectionResult, RawDetection, new_result_id

from .base import DetectionOutcome, Detector
from .class_mapper import ClassMapper
from .decoder import RawOutputDecoder
from .ensemble import EnsembleMerger
from .nms import non_max_suppression


class ModelDetector(Detector):
    is_mock = False

    def __init__(
        self,
        runner: InferenceRunner,
        model_cfg: ModelConfig,
        detection_cfg: DetectionConfig,
        labels: Optional[Sequence[str]] = None,
        preprocessor: Optional[Preprocessor] = None,
    ):
        self.runner = runner
        self.model_cfg = model_cfg
        self.detection_cfg = detection_cfg
        self.mapper = ClassMapper(labels)
        self.merger = EnsembleMerger(detection_cfg.ensemble)
        self.preprocessor = preprocessor or Preprocessor(
            input_size=model_cfg.input_size,
            enhance_contrast=detection_cfg.enhance_contrast,
            min_scaled_size=detection_cfg.ensemble.min_scaled_size,
            max_scaled_size=detection_cfg.ensemble.max_scaled_size,
        )
        self._decoders = {
            enhanced: RawOutputDecoder(
                num_classes=model_cfg.num_classes,
                confidence_threshold=detection_cfg.thresholds(enhanced).confidence_threshold,
                early_reject_threshold=detection_cfg.thresholds(enhanced).early_reject_threshold,
            )
            for enhanced in (False, True)
        }

    def detect(self, frame: np.ndarray, enhanced: bool = False) -> DetectionOutcome:
        base = self._run_pass(frame, enhanced, scale=None)
        if base.status is not OutcomeStatus.OK:
            return base

        results: List[DetectionResult] = list(base.results)
        scales_used: List[float] = [1.0]

        if self.merger.should_run(len(results), enhanced):
            auxiliary: List[Tuple[DetectionResult, ...]] = []
            for scale in self.detection_cfg.ensemble.scales:
                extra = self._run_pass(frame, enhanced, scale=scale)
                if extra.status is OutcomeStatus.RESOURCE_EXHAUSTED:
                    logging.warning(f"Out of memory in ensemble pass at scale {scale}, dropping it: {extra.error}")
                    continue
                if extra.status is not OutcomeStatus.OK:
                    logging.warning(f"Ensemble pass at scale {scale} failed: {extra.error}")
                    continue
                auxiliary.append(extra.results)
                scales_used.append(scale)
            results = self.merger.merge(results, auxiliary)

        return DetectionOutcome.ok(results, scales_used)

    def _run_pass(self, frame: np.ndarray, enhanced: bool, scale: Optional[float]) -> DetectionOutcome:
        try:
            tensor = self.preprocessor.prepare(frame, enhanced=enhanced, scale=scale)
        except MemoryError as e:
            return DetectionOutcome.exhausted(str(e) or "MemoryError")
        except cv2.error as e:
            return DetectionOutcome.failed(f"Preprocessing failed: {e}")

        outcome = self.runner.run(tensor)
        if outcome.status is OutcomeStatus.RESOURCE_EXHAUSTED:
            return DetectionOutcome.exhausted(outcome.error)
        if not outcome.is_ok:
            return DetectionOutcome.failed(outcome.error)

        thresholds = self.detection_cfg.thresholds(enhanced)
        candidates = self._decoders[enhanced].decode(outcome.output)
        kept = non_max_suppression(candidates, thresholds.nms_threshold)
        return DetectionOutcome.ok(self._to_results(kept))

    def _to_results(self, kept: Sequence[RawDetection]) -> List[DetectionResult]:
        results: List[DetectionResult] = []
        for det in kept[: self.model_cfg.max_detections]:
            obj = self.mapper.map_class(det.class_id)
            if obj is None:
                continue
            results.append(
                DetectionResult(
                    id=new_result_id(),
                    label=obj.display_name,
                    confidence=min(1.0, max(0.0, det.confidence)),
                    bounding_box=det.to_box(),
                )
            )
        return results

    def close(self) -> None:
        self.runner.close()
