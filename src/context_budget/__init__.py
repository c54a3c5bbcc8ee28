"""
Context Budget - contrôle du budget de contexte d'un agent LLM.

Pipeline (piloté par la boucle d'agent, hors de cette bibliothèque):
1. Ingestion: ObservationMasker masque les sorties d'outils sous budget.
2. Périodiquement sur l'historique: TTLTracker désigne les appels expirés,
   apply_hard_clear les remplace par des placeholders, soft_trim_messages
   rogne les messages encore volumineux.
"""

__version__ = "1.0.0"

from .core import (
    ContextBudgetError,
    ConfigurationError,
    Observation,
    MaskedObservation,
    MaskingStats,
    PrunableMessage,
    ToolCallTimestamp,
    estimate_tokens,
)
from .config import (
    MaskingConfig,
    TTLConfig,
    SoftTrimOptions,
    HardClearOptions,
    load_config,
)
from .features.observation_masking import MaskingOutcome, ObservationMasker, detect_output_type
from .features.session_pruning import (
    TTLTracker,
    apply_hard_clear,
    hard_clear_expired_tool_calls,
    hard_clear_message,
    hard_clear_old_messages,
    should_hard_clear,
    should_soft_trim,
    soft_trim_content,
    soft_trim_message,
    soft_trim_messages,
    soft_trim_string,
)

__all__ = [
    "__version__",
    "ContextBudgetError",
    "ConfigurationError",
    "Observation",
    "MaskedObservation",
    "MaskingStats",
    "PrunableMessage",
    "ToolCallTimestamp",
    "estimate_tokens",
    "MaskingConfig",
    "TTLConfig",
    "SoftTrimOptions",
    "HardClearOptions",
    "load_config",
    "MaskingOutcome",
    "ObservationMasker",
    "detect_output_type",
    "TTLTracker",
    "apply_hard_clear",
    "hard_clear_expired_tool_calls",
    "hard_clear_message",
    "hard_clear_old_messages",
    "should_hard_clear",
    "should_soft_trim",
    "soft_trim_content",
    "soft_trim_message",
    "soft_trim_messages",
    "soft_trim_string",
]
