"""
Workflow core: phase transitions, recovery and artifact checks.

    from specwright.workflow import PhaseTransitionEngine, RecoveryEngine
"""

from specwright.workflow.engine import PhaseTransitionEngine, is_human_input_required
from specwright.workflow.fsm import PhaseCursor
from specwright.workflow.recovery import (
    DriftReport,
    RecoveryEngine,
    ValidationResult,
    validate_phase_artifacts,
)

__all__ = [
    "DriftReport",
    "PhaseCursor",
    "PhaseTransitionEngine",
    "RecoveryEngine",
    "ValidationResult",
    "is_human_input_required",
    "validate_phase_artifacts",
]
