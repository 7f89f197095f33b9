"""
Model class -> safety object mapping.

The primary table maps model class ids straight to safety objects. Ids
outside the table fall back to a fuzzy label match against the model's own
label list.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence

from models.safety import SafetyObject

# Class ids in the safety model's 80-class output
DEFAULT_CLASS_TABLE: Dict[int, SafetyObject] = {
    39: SafetyObject.OXYGEN_TANK,
    0: SafetyObject.FIRE_EXTINGUISHER,
    84: SafetyObject.FIRE_ALARM,
    73: SafetyObject.FIRST_AID_KIT,
    47: SafetyObject.EMERGENCY_LIGHT,
    25: SafetyObject.SAFETY_HELMET,
    67: SafetyObject.COMMUNICATION_DEVICE,
}


def match_label(label: Optional[str]) -> Optional[SafetyObject]:
    """
    Fuzzy-match a free-form label to a safety object.

    A label matches when, case-insensitively, either it contains the display
    name or the display name contains it. Blank labels never match. The
    first member in enumeration order wins.
    """
    if not label or not label.strip():
        return None
    needle = label.strip().lower()
    for obj in SafetyObject:
        name = obj.display_name.lower()
        if name in needle or needle in name:
            return obj
    return None


def resolve_label(label: Optional[str]) -> Optional[SafetyObject]:
    """Resolve a result label: exact name first, then the fuzzy match."""
    return SafetyObject.from_label(label) or match_label(label)


def map_class_to_safety_object(
    class_id: int,
    model_labels: Sequence[str] = (),
    table: Mapping[int, SafetyObject] = DEFAULT_CLASS_TABLE,
) -> Optional[SafetyObject]:
    """
    Map a model class id to a safety object.

    Args:
        class_id: Index reported by the decoder
        model_labels: The model's label list, indexed by class id
        table: Primary id -> object table

    Returns:
        The mapped SafetyObject, or None when the class is not a safety object
    """
    obj = table.get(class_id)
    if obj is not None:
        return obj
    if 0 <= class_id < len(model_labels):
        return match_label(model_labels[class_id])
    return None


class ClassMapper:
    """Stateful mapper that remembers its label list and counts misses."""

    def __init__(
        self,
        model_labels: Optional[Sequence[str]] = None,
        table: Optional[Mapping[int, SafetyObject]] = None,
    ):
        self.model_labels = list(model_labels or [])
        self.table = dict(table) if table is not None else dict(DEFAULT_CLASS_TABLE)
        self.unmapped_count = 0

    def map_class(self, class_id: int) -> Optional[SafetyObject]:
        obj = map_class_to_safety_object(class_id, self.model_labels, self.table)
        if obj is None:
            self.unmapped_count += 1
            logging.debug(f"Class {class_id} has no safety object mapping, dropping")
        return obj
