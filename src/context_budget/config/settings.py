"""
Dataclasses pour la configuration.

Les valeurs sont immuables: une configuration est construite une fois puis
passée explicitement aux composants (pas d'état global).
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Pattern, Tuple, Union

from ..core.constants import (
    DEFAULT_CLEANUP_MAX_AGE_MS,
    DEFAULT_ERROR_PATTERNS,
    DEFAULT_HARD_CLEAR_CONFIG,
    DEFAULT_HEAD_TAIL_LINES,
    DEFAULT_IMPORTANT_KEYWORDS,
    DEFAULT_MAX_TOKENS_PER_OBSERVATION,
    DEFAULT_MIN_RELEVANCE_THRESHOLD,
    DEFAULT_SOFT_TRIM_CONFIG,
    DEFAULT_TOTAL_TOKEN_BUDGET,
    DEFAULT_TTL_MS,
    DEFAULT_TYPE_PRIORITIES,
)
from ..core.exceptions import ConfigurationError
from ..core.models import OUTPUT_TYPES


def compile_error_patterns(patterns: Iterable[Union[str, Pattern[str]]]) -> Tuple[Pattern[str], ...]:
    """
    Compile une liste ordonnée de patterns d'erreur (insensibles à la casse).

    Args:
        patterns: Chaînes regex ou patterns déjà compilés

    Returns:
        Tuple de patterns compilés, ordre préservé

    Raises:
        ConfigurationError: Si une regex est invalide
    """
    compiled = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
            continue
        if not isinstance(pattern, str):
            raise ConfigurationError(
                message=f"Pattern d'erreur invalide (type {type(pattern).__name__})",
                config_key="error_patterns"
            )
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            raise ConfigurationError(
                message=f"Regex invalide dans error_patterns: {pattern!r} ({e})",
                config_key="error_patterns"
            )
    return tuple(compiled)


def _ordered_keywords(keywords: Iterable[str]) -> Tuple[str, ...]:
    """Ensemble ordonné de mots-clés en minuscules."""
    seen: Dict[str, None] = {}
    for keyword in keywords:
        if isinstance(keyword, str) and keyword.strip():
            seen.setdefault(keyword.strip().lower(), None)
    return tuple(seen)


@dataclass(frozen=True)
class MaskingConfig:
    """Politique de masking des observations.

    Attributes:
        enabled: Active/désactive le masking.
        max_tokens_per_observation: Plafond de tokens par observation.
        total_token_budget: Budget global partagé par un lot d'observations.
        min_relevance_threshold: En dessous, l'observation est masquée entièrement.
        type_priorities: Poids [0, 1] par type de sortie; les huit types sont requis.
        important_keywords: Mots-clés qui augmentent la pertinence.
        error_patterns: Regex d'erreur (une correspondance force la rétention).
        keep_partial_content: Garder tête/queue lors d'une troncature.
        head_tail_lines: Lignes conservées en tête et en queue lors d'une extraction.
    """

    enabled: bool = True
    max_tokens_per_observation: int = DEFAULT_MAX_TOKENS_PER_OBSERVATION
    total_token_budget: int = DEFAULT_TOTAL_TOKEN_BUDGET
    min_relevance_threshold: float = DEFAULT_MIN_RELEVANCE_THRESHOLD
    type_priorities: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_TYPE_PRIORITIES))
    important_keywords: Tuple[str, ...] = DEFAULT_IMPORTANT_KEYWORDS
    error_patterns: Tuple[Pattern[str], ...] = field(
        default_factory=lambda: compile_error_patterns(DEFAULT_ERROR_PATTERNS)
    )
    keep_partial_content: bool = True
    head_tail_lines: int = DEFAULT_HEAD_TAIL_LINES

    def __post_init__(self):
        missing = [t for t in OUTPUT_TYPES if t not in self.type_priorities]
        if missing:
            raise ConfigurationError(
                message=f"type_priorities incomplet, types manquants: {', '.join(missing)}",
                config_key="type_priorities"
            )
        priorities: Dict[str, float] = {}
        for output_type in OUTPUT_TYPES:
            weight = self.type_priorities[output_type]
            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not 0.0 <= weight <= 1.0:
                raise ConfigurationError(
                    message=f"Priorité invalide pour '{output_type}': {weight!r} (attendu dans [0, 1])",
                    config_key="type_priorities"
                )
            priorities[output_type] = float(weight)

        object.__setattr__(self, "type_priorities", priorities)
        object.__setattr__(self, "important_keywords", _ordered_keywords(self.important_keywords))
        object.__setattr__(self, "error_patterns", compile_error_patterns(self.error_patterns))
        object.__setattr__(self, "head_tail_lines", max(0, int(self.head_tail_lines)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "max_tokens_per_observation": self.max_tokens_per_observation,
            "total_token_budget": self.total_token_budget,
            "min_relevance_threshold": self.min_relevance_threshold,
            "type_priorities": dict(self.type_priorities),
            "important_keywords": list(self.important_keywords),
            "error_patterns": [p.pattern for p in self.error_patterns],
            "keep_partial_content": self.keep_partial_content,
            "head_tail_lines": self.head_tail_lines,
        }


@dataclass(frozen=True)
class TTLConfig:
    """Configuration du suivi TTL des appels d'outils."""
    ttl_ms: int = DEFAULT_TTL_MS
    cleanup_max_age_ms: int = DEFAULT_CLEANUP_MAX_AGE_MS


@dataclass(frozen=True)
class SoftTrimOptions:
    """Options du soft trim (conservation tête/queue).

    Attributes:
        head_chars: Caractères conservés en tête.
        tail_chars: Caractères conservés en queue.
        min_prunable_chars: Longueur minimale pour qu'un contenu soit rogné.
        keep_system_messages: Exempter les messages système.
        keep_user_messages: Exempter les messages utilisateur.
        keep_last_n_assistant: Les N derniers messages assistant sont exemptés.
    """
    head_chars: int = DEFAULT_SOFT_TRIM_CONFIG["head_chars"]
    tail_chars: int = DEFAULT_SOFT_TRIM_CONFIG["tail_chars"]
    min_prunable_chars: int = DEFAULT_SOFT_TRIM_CONFIG["min_prunable_chars"]
    keep_system_messages: bool = DEFAULT_SOFT_TRIM_CONFIG["keep_system_messages"]
    keep_user_messages: bool = DEFAULT_SOFT_TRIM_CONFIG["keep_user_messages"]
    keep_last_n_assistant: int = DEFAULT_SOFT_TRIM_CONFIG["keep_last_n_assistant"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "head_chars": self.head_chars,
            "tail_chars": self.tail_chars,
            "min_prunable_chars": self.min_prunable_chars,
            "keep_system_messages": self.keep_system_messages,
            "keep_user_messages": self.keep_user_messages,
            "keep_last_n_assistant": self.keep_last_n_assistant,
        }


@dataclass(frozen=True)
class HardClearOptions:
    """Options du hard clear par âge.

    Attributes:
        max_message_age: Âge maximal (ms) avant remplacement; <= 0 désactive.
        keep_system_messages: Exempter les messages système.
        keep_user_messages: Exempter les messages utilisateur.
        keep_last_n_assistant: Les N derniers messages assistant sont exemptés.
    """
    max_message_age: int = DEFAULT_HARD_CLEAR_CONFIG["max_message_age"]
    keep_system_messages: bool = DEFAULT_HARD_CLEAR_CONFIG["keep_system_messages"]
    keep_user_messages: bool = DEFAULT_HARD_CLEAR_CONFIG["keep_user_messages"]
    keep_last_n_assistant: int = DEFAULT_HARD_CLEAR_CONFIG["keep_last_n_assistant"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_message_age": self.max_message_age,
            "keep_system_messages": self.keep_system_messages,
            "keep_user_messages": self.keep_user_messages,
            "keep_last_n_assistant": self.keep_last_n_assistant,
        }
