"""
Safety object taxonomy.

The domain categories the detector reports on. Display colors and icons
belong to the UI layer and are not kept here.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class SafetyObject(Enum):
    """
    Fixed registry of safety equipment categories.

    Each member carries a human-readable display name and whether its
    absence is a critical condition.
    """
    OXYGEN_TANK = ("Oxygen Tank", True)
    FIRE_EXTINGUISHER = ("Fire Extinguisher", True)
    FIRE_ALARM = ("Fire Alarm", True)
    FIRST_AID_KIT = ("First Aid Kit", False)
    EMERGENCY_LIGHT = ("Emergency Light", False)
    SAFETY_HELMET = ("Safety Helmet", False)
    COMMUNICATION_DEVICE = ("Communication Device", False)

    def __init__(self, display_name: str, is_critical: bool):
        self.display_name = display_name
        self.is_critical = is_critical

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["SafetyObject"]:
        """
        Resolve a label by case-insensitive exact match.

        Matches either the display name ("Fire Alarm") or the member
        name ("FIRE_ALARM").
        """
        if not label:
            return None
        needle = label.strip().lower()
        for obj in cls:
            if obj.display_name.lower() == needle or obj.name.lower() == needle:
                return obj
        return None

    @classmethod
    def critical(cls) -> List["SafetyObject"]:
        """Critical members in enumeration order."""
        return [obj for obj in cls if obj.is_critical]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "is_critical": self.is_critical,
        }
