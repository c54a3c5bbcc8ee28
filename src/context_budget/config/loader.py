"""context_budget.config.loader

Chargement de la configuration TOML.

Note d'architecture:
- Couche optionnelle: le cœur ne reçoit que des dataclasses construites.
- Ce module ne dépend pas de `features/*` (évite les imports circulaires).
- Les regex de `error_patterns` sont validées ici, au chargement, et non
  pendant un passage de masking.

Sections reconnues:

    [observation_masking]
    enabled = true
    max_tokens_per_observation = 2000
    total_token_budget = 8000
    min_relevance_threshold = 0.2
    keep_partial_content = true
    head_tail_lines = 10
    important_keywords = ["error", "fix"]
    error_patterns = ["error", "traceback"]

    [observation_masking.type_priorities]
    error = 1.0

    [ttl]
    ttl_ms = 300000
    cleanup_max_age_ms = 3600000

    [soft_trim]
    head_chars = 1500
    ...

    [hard_clear]
    max_message_age = 0
    ...
"""
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.exceptions import ConfigurationError
from ..core.models import OUTPUT_TYPES
from .settings import (
    HardClearOptions,
    MaskingConfig,
    SoftTrimOptions,
    TTLConfig,
    compile_error_patterns,
)


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Charge la configuration depuis un fichier TOML.

    Args:
        config_path: Chemin vers le fichier config

    Returns:
        Dictionnaire de configuration

    Raises:
        ConfigurationError: Si le fichier n'existe pas ou est invalide
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(
            message=f"Fichier de configuration non trouvé: {config_path}",
            config_key="config_path"
        )

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"Fichier TOML invalide: {config_path} ({e})",
            config_key="config_path"
        )

    return _expand_env_vars(raw_config)


def _clamp_int(value: object, *, default: int, min_value: int, max_value: Optional[int] = None) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        v = value
    elif isinstance(value, float):
        v = int(value)
    else:
        return default
    if v < min_value:
        return min_value
    if max_value is not None and v > max_value:
        return max_value
    return v


def _clamp_float(value: object, *, default: float, min_value: float, max_value: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        v = float(value)
    else:
        return default
    if v < min_value:
        return min_value
    if v > max_value:
        return max_value
    return v


def _get_section(config: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    obj = config.get(key) if isinstance(config, dict) else None
    return obj if isinstance(obj, dict) else None


def get_masking_config(config: Dict[str, Any]) -> MaskingConfig:
    """Charge la section `[observation_masking]`.

    Propriétés:
    - Fallback robuste si section absente/incomplète
    - Validation/clamp des types numériques
    - Les priorités partielles complètent celles par défaut

    Raises:
        ConfigurationError: Si une regex de `error_patterns` est invalide
    """

    defaults = MaskingConfig()
    obj = _get_section(config, "observation_masking")
    if obj is None:
        return defaults

    enabled = bool(obj.get("enabled", defaults.enabled))

    max_tokens_per_observation = _clamp_int(
        obj.get("max_tokens_per_observation", defaults.max_tokens_per_observation),
        default=defaults.max_tokens_per_observation,
        min_value=1,
    )
    total_token_budget = _clamp_int(
        obj.get("total_token_budget", defaults.total_token_budget),
        default=defaults.total_token_budget,
        min_value=0,
    )
    min_relevance_threshold = _clamp_float(
        obj.get("min_relevance_threshold", defaults.min_relevance_threshold),
        default=defaults.min_relevance_threshold,
        min_value=0.0,
        max_value=1.0,
    )
    head_tail_lines = _clamp_int(
        obj.get("head_tail_lines", defaults.head_tail_lines),
        default=defaults.head_tail_lines,
        min_value=0,
    )
    keep_partial_content = bool(obj.get("keep_partial_content", defaults.keep_partial_content))

    type_priorities = dict(defaults.type_priorities)
    priorities_obj = obj.get("type_priorities")
    if isinstance(priorities_obj, dict):
        for output_type in OUTPUT_TYPES:
            if output_type in priorities_obj:
                type_priorities[output_type] = _clamp_float(
                    priorities_obj[output_type],
                    default=type_priorities[output_type],
                    min_value=0.0,
                    max_value=1.0,
                )

    keywords_obj = obj.get("important_keywords")
    if isinstance(keywords_obj, list):
        important_keywords = tuple(k for k in keywords_obj if isinstance(k, str))
    else:
        important_keywords = defaults.important_keywords

    patterns_obj = obj.get("error_patterns")
    if isinstance(patterns_obj, list):
        error_patterns = compile_error_patterns(patterns_obj)
    else:
        error_patterns = defaults.error_patterns

    return MaskingConfig(
        enabled=enabled,
        max_tokens_per_observation=max_tokens_per_observation,
        total_token_budget=total_token_budget,
        min_relevance_threshold=min_relevance_threshold,
        type_priorities=type_priorities,
        important_keywords=important_keywords,
        error_patterns=error_patterns,
        keep_partial_content=keep_partial_content,
        head_tail_lines=head_tail_lines,
    )


def get_ttl_config(config: Dict[str, Any]) -> TTLConfig:
    """Charge la section `[ttl]` avec fallback sur les valeurs par défaut."""

    defaults = TTLConfig()
    obj = _get_section(config, "ttl")
    if obj is None:
        return defaults

    return TTLConfig(
        ttl_ms=_clamp_int(obj.get("ttl_ms", defaults.ttl_ms), default=defaults.ttl_ms, min_value=0),
        cleanup_max_age_ms=_clamp_int(
            obj.get("cleanup_max_age_ms", defaults.cleanup_max_age_ms),
            default=defaults.cleanup_max_age_ms,
            min_value=0,
        ),
    )


def get_soft_trim_options(config: Dict[str, Any]) -> SoftTrimOptions:
    """Charge la section `[soft_trim]`."""

    defaults = SoftTrimOptions()
    obj = _get_section(config, "soft_trim")
    if obj is None:
        return defaults

    return SoftTrimOptions(
        head_chars=_clamp_int(obj.get("head_chars", defaults.head_chars), default=defaults.head_chars, min_value=0),
        tail_chars=_clamp_int(obj.get("tail_chars", defaults.tail_chars), default=defaults.tail_chars, min_value=0),
        min_prunable_chars=_clamp_int(
            obj.get("min_prunable_chars", defaults.min_prunable_chars),
            default=defaults.min_prunable_chars,
            min_value=0,
        ),
        keep_system_messages=bool(obj.get("keep_system_messages", defaults.keep_system_messages)),
        keep_user_messages=bool(obj.get("keep_user_messages", defaults.keep_user_messages)),
        keep_last_n_assistant=_clamp_int(
            obj.get("keep_last_n_assistant", defaults.keep_last_n_assistant),
            default=defaults.keep_last_n_assistant,
            min_value=0,
        ),
    )


def get_hard_clear_options(config: Dict[str, Any]) -> HardClearOptions:
    """Charge la section `[hard_clear]`."""

    defaults = HardClearOptions()
    obj = _get_section(config, "hard_clear")
    if obj is None:
        return defaults

    return HardClearOptions(
        max_message_age=_clamp_int(
            obj.get("max_message_age", defaults.max_message_age),
            default=defaults.max_message_age,
            min_value=0,
        ),
        keep_system_messages=bool(obj.get("keep_system_messages", defaults.keep_system_messages)),
        keep_user_messages=bool(obj.get("keep_user_messages", defaults.keep_user_messages)),
        keep_last_n_assistant=_clamp_int(
            obj.get("keep_last_n_assistant", defaults.keep_last_n_assistant),
            default=defaults.keep_last_n_assistant,
            min_value=0,
        ),
    )
