"""Observation masking (ingestion).

But: réduire les tokens des sorties d'outils fraîchement produites avant leur
insertion dans l'historique, sous un budget global de tokens.
"""

from .masker import MaskingOutcome, ObservationMasker, calculate_stats
from .output_type import detect_output_type
from .relevance import extract_keywords
from .truncation import truncate_to_tokens

__all__ = [
    "MaskingOutcome",
    "ObservationMasker",
    "calculate_stats",
    "detect_output_type",
    "extract_keywords",
    "truncate_to_tokens",
]
