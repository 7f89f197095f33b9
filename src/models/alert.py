"""
AlertEvent model for advisory and safety alerts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .safety import SafetyObject


class AlertSeverity(str, Enum):
    """Alert severity levels, lowest first."""
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AlertEvent:
    """
    An alert raised by the detection core.

    Attributes:
        message: Human-readable message.
        severity: Alert severity.
        related_object: Safety object the alert is about, if any.
        timestamp: Unix timestamp when the alert was raised.
    """
    message: str
    severity: AlertSeverity
    related_object: Optional[SafetyObject] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "message": self.message,
            "severity": self.severity.value,
            "related_object": self.related_object.name if self.related_object else None,
            "timestamp": self.timestamp,
        }
