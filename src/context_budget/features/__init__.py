"""
Fonctionnalités de Context Budget.
"""

from .observation_masking import (
    MaskingOutcome,
    ObservationMasker,
    detect_output_type,
)
from .session_pruning import (
    TTLTracker,
    SoftTrimResult,
    HardClearResult,
    soft_trim_messages,
    apply_hard_clear,
)

__all__ = [
    # Observation masking
    "MaskingOutcome",
    "ObservationMasker",
    "detect_output_type",
    # Session pruning
    "TTLTracker",
    "SoftTrimResult",
    "HardClearResult",
    "soft_trim_messages",
    "apply_hard_clear",
]
