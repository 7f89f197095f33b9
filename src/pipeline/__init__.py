"""
Pipeline module for the safety detection system.

The pipeline runs the single detection lane:
- Admission control and adaptive frame spacing (AdaptiveScheduler)
- Detection under the inference lock
- Publication to the session aggregator, alert policy and listeners
"""

from .orchestrator import DetectionOrchestrator, OrchestratorState, create_orchestrator_from_config
from .scheduler import AdaptiveScheduler, AdaptiveSchedulerState, AdmissionDecision

__all__ = [
    "DetectionOrchestrator",
    "OrchestratorState",
    "create_orchestrator_from_config",
    "AdaptiveScheduler",
    "AdaptiveSchedulerState",
    "AdmissionDecision",
]
