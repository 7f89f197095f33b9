"""
Safety Object Detection - Detection Module

Decoding, suppression, class mapping and ensemble merging of raw model
output, plus the model-backed and synthetic detector strategies.
"""

from .base import Detector, DetectionOutcome
from .class_mapper import ClassMapper, map_class_to_safety_object, resolve_label
from .decoder import RawOutputDecoder, decode_output
from .ensemble import EnsembleMerger
from .geometry import intersection_over_union
from .model_detector import ModelDetector
from .nms import non_max_suppression
from .synthetic import SyntheticDetector

__all__ = [
    'Detector',
    'DetectionOutcome',
    'ClassMapper',
    'map_class_to_safety_object',
    'resolve_label',
    'RawOutputDecoder',
    'decode_output',
    'EnsembleMerger',
    'intersection_over_union',
    'ModelDetector',
    'non_max_suppression',
    'SyntheticDetector',
]
