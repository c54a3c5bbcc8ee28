"""context_budget.features.observation_masking.masker

Masking des sorties d'outils avant insertion dans l'historique.

Responsabilité (couche Features):
- Noter la pertinence de chaque observation (type, requête, mots-clés,
  patterns d'erreur, récence).
- Répartir un budget global de tokens sur un lot d'observations, par
  priorité décroissante, sans jamais dépasser `total_token_budget`.
- Politique alternative par fenêtre glissante (les K plus récentes en entier).

Invariants:
- La sortie est toujours dans l'ordre d'arrivée des observations.
- Une observation de type "error" est toujours conservée.
- Transformation pure: aucune I/O, le temps `now` peut être fourni.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ...config.settings import MaskingConfig
from ...core.constants import (
    DEFAULT_SLIDING_WINDOW_SIZE,
    MIN_TRUNCATION_TOKENS,
    SLIDING_WINDOW_RETENTION_RELEVANCE,
)
from ...core.models import MaskedObservation, MaskingStats, Observation, OutputType
from ...core.tokens import estimate_tokens
from .output_type import detect_output_type
from .relevance import extract_keywords, score_relevance, should_retain_fully
from .truncation import (
    extract_important_content,
    generate_mask_summary,
    generate_placeholder,
    truncate_to_tokens,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaskingOutcome:
    """Résultat d'un passage de masking sur un lot."""
    masked: List[MaskedObservation]
    stats: MaskingStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "masked": [m.to_dict() for m in self.masked],
            "stats": self.stats.to_dict(),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_masked(
    obs: Observation,
    *,
    output: str,
    original_length: int,
    relevance: float,
    retained: bool,
    reason: Optional[str] = None,
) -> MaskedObservation:
    return MaskedObservation(
        id=obs.id,
        tool_name=obs.tool_name,
        input=obs.input or "",
        output=output,
        timestamp=obs.timestamp,
        type=obs.type,
        original_length=original_length,
        masked_length=len(output),
        relevance_score=relevance,
        was_retained=retained,
        mask_reason=reason,
    )


def _passthrough(obs: Observation) -> MaskedObservation:
    output = obs.output or ""
    return _to_masked(obs, output=output, original_length=len(output), relevance=1.0, retained=True)


def _sanitize(observations: Optional[Iterable[Optional[Observation]]]) -> List[Observation]:
    """None => liste vide; sorties None => ""."""
    safe: List[Observation] = []
    for obs in observations or ():
        if obs is None:
            continue
        if obs.output is None or obs.input is None:
            obs = replace(obs, output=obs.output or "", input=obs.input or "")
        safe.append(obs)
    return safe


def calculate_stats(
    original: Sequence[Observation],
    masked: Sequence[MaskedObservation],
) -> MaskingStats:
    """Statistiques en tokens estimés avant/après masking."""

    original_tokens = sum(estimate_tokens(o.output) for o in original)
    masked_tokens = sum(estimate_tokens(m.output) for m in masked)
    retained = sum(1 for m in masked if m.was_retained)
    saved = original_tokens - masked_tokens

    return MaskingStats(
        total_observations=len(original),
        retained_observations=retained,
        masked_observations=len(original) - retained,
        original_tokens=original_tokens,
        masked_tokens=masked_tokens,
        tokens_saved=saved,
        savings_percentage=(saved / original_tokens) * 100 if original_tokens > 0 else 0.0,
    )


def _unchanged_stats(observations: Sequence[Observation]) -> MaskingStats:
    tokens = sum(estimate_tokens(o.output) for o in observations)
    return MaskingStats(
        total_observations=len(observations),
        retained_observations=len(observations),
        masked_observations=0,
        original_tokens=tokens,
        masked_tokens=tokens,
    )


class ObservationMasker:
    """
    Masking des observations d'outils sous contrainte de budget.

    Stratégie (lot):
    1. Note chaque observation
    2. Trie par pertinence * priorité du type (tri stable: à égalité, ordre d'arrivée)
    3. Alloue le budget glouton: entier, tronqué (>= 100 tokens) ou masqué
    4. Restaure l'ordre d'arrivée
    """

    def __init__(self, config: Optional[MaskingConfig] = None):
        self._config = config or MaskingConfig()
        self._query = ""
        self._query_keywords: tuple[str, ...] = ()

    @property
    def config(self) -> MaskingConfig:
        return self._config

    @property
    def query_keywords(self) -> tuple[str, ...]:
        return self._query_keywords

    def update_config(self, **changes: Any) -> None:
        """Remplace la configuration par une nouvelle valeur immuable."""
        self._config = replace(self._config, **changes)
        logger.debug(f"[MASKING] Configuration mise à jour: {sorted(changes)}")

    def set_query_context(self, query: str | None) -> None:
        """Définit la requête courante utilisée pour le scoring."""
        self._query = query or ""
        self._query_keywords = extract_keywords(self._query)
        logger.debug(f"[MASKING] Contexte de requête: {list(self._query_keywords)}")

    def clear_query_context(self) -> None:
        self._query = ""
        self._query_keywords = ()

    def detect_output_type(self, tool_name: str | None, content: str | None) -> OutputType:
        return detect_output_type(tool_name, content, self._config.error_patterns)

    def calculate_relevance(self, obs: Observation, now: Optional[int] = None) -> float:
        return score_relevance(
            obs,
            self._config,
            self._query_keywords,
            _now_ms() if now is None else now,
        )

    def mask_observation(self, obs: Optional[Observation], now: Optional[int] = None) -> MaskedObservation:
        """
        Masque une observation isolée.

        Args:
            obs: Observation à traiter (None => observation vide conservée)
            now: Instant de référence (ms) pour la récence

        Returns:
            Observation masquée (entière, tronquée, extraite ou résumée)
        """
        config = self._config
        sanitized = _sanitize([obs])
        if not sanitized:
            return _passthrough(Observation(id="", tool_name=""))
        safe = sanitized[0]
        output = safe.output
        original_length = len(output)

        if not config.enabled:
            return _passthrough(safe)

        relevance = self.calculate_relevance(safe, now)

        if should_retain_fully(safe, relevance, config):
            truncated = truncate_to_tokens(
                output, config.max_tokens_per_observation, config.keep_partial_content
            )
            return _to_masked(
                safe,
                output=truncated,
                original_length=original_length,
                relevance=relevance,
                retained=True,
                reason="Truncated to observation cap" if truncated != output else None,
            )

        if relevance < config.min_relevance_threshold:
            return _to_masked(
                safe,
                output=generate_mask_summary(safe, "low_relevance"),
                original_length=original_length,
                relevance=relevance,
                retained=False,
                reason="Low relevance score",
            )

        return _to_masked(
            safe,
            output=extract_important_content(safe, relevance, config, self._query_keywords),
            original_length=original_length,
            relevance=relevance,
            retained=True,
            reason="Partial extraction",
        )

    def mask_observations(
        self,
        observations: Optional[Iterable[Optional[Observation]]],
        now: Optional[int] = None,
    ) -> MaskingOutcome:
        """
        Masque un lot d'observations sous le budget global `total_token_budget`.

        La somme des tokens estimés des observations conservées (entières ou
        tronquées) ne dépasse jamais le budget.
        Les entrées None sont ignorées: elles ne figurent ni dans le résultat
        ni dans `total_observations`.

        Returns:
            MaskingOutcome (observations dans l'ordre d'arrivée + statistiques)
        """
        config = self._config
        safe = _sanitize(observations)

        if not config.enabled or not safe:
            return MaskingOutcome(
                masked=[_passthrough(o) for o in safe],
                stats=_unchanged_stats(safe),
            )

        now = _now_ms() if now is None else now

        scored = []
        for position, obs in enumerate(safe):
            relevance = self.calculate_relevance(obs, now)
            priority = relevance * config.type_priorities.get(obs.type, config.type_priorities["unknown"])
            scored.append((position, obs, relevance, priority))

        # Tri stable: à priorité égale, l'ordre d'arrivée est conservé
        scored.sort(key=lambda item: -item[3])

        used_tokens = 0
        results: list[tuple[int, MaskedObservation]] = []

        for position, obs, relevance, _ in scored:
            original_length = len(obs.output)
            remaining = config.total_token_budget - used_tokens

            if remaining <= 0:
                masked = _to_masked(
                    obs,
                    output=generate_mask_summary(obs, "budget_exceeded"),
                    original_length=original_length,
                    relevance=relevance,
                    retained=False,
                    reason="Token budget exceeded",
                )
                results.append((position, masked))
                continue

            allowed = min(remaining, config.max_tokens_per_observation)
            tokens = estimate_tokens(obs.output)

            if tokens <= allowed:
                masked = _to_masked(
                    obs,
                    output=obs.output,
                    original_length=original_length,
                    relevance=relevance,
                    retained=True,
                )
                used_tokens += tokens
            elif allowed >= MIN_TRUNCATION_TOKENS:
                truncated = truncate_to_tokens(obs.output, allowed, config.keep_partial_content)
                masked = _to_masked(
                    obs,
                    output=truncated,
                    original_length=original_length,
                    relevance=relevance,
                    retained=True,
                    reason="Truncated to fit budget",
                )
                used_tokens += estimate_tokens(truncated)
            else:
                masked = _to_masked(
                    obs,
                    output=generate_mask_summary(obs, "insufficient_budget"),
                    original_length=original_length,
                    relevance=relevance,
                    retained=False,
                    reason="Insufficient budget for content",
                )
            results.append((position, masked))

        results.sort(key=lambda item: item[0])
        masked_list = [m for _, m in results]
        stats = calculate_stats(safe, masked_list)

        logger.debug(
            f"[MASKING] Lot: {stats.retained_observations}/{stats.total_observations} conservées, "
            f"{used_tokens}/{config.total_token_budget} tokens utilisés, "
            f"{stats.tokens_saved} économisés"
        )
        return MaskingOutcome(masked=masked_list, stats=stats)

    def apply_sliding_window_mask(
        self,
        observations: Optional[Iterable[Optional[Observation]]],
        window_size: int = DEFAULT_SLIDING_WINDOW_SIZE,
        now: Optional[int] = None,
    ) -> MaskingOutcome:
        """
        Masking par fenêtre glissante.

        Les `window_size` observations les plus récentes sont conservées (au
        plafond par observation). Parmi les plus anciennes, les erreurs et les
        observations très pertinentes (> 0.9) sont conservées à la moitié du
        plafond; les autres deviennent un placeholder.
        """
        config = self._config
        safe = _sanitize(observations)

        if not config.enabled or not safe:
            return MaskingOutcome(
                masked=[_passthrough(o) for o in safe],
                stats=_unchanged_stats(safe),
            )

        now = _now_ms() if now is None else now

        chronological = sorted(enumerate(safe), key=lambda item: item[1].timestamp)
        window_start = max(0, len(chronological) - max(0, window_size))
        results: list[tuple[int, MaskedObservation]] = []

        for rank, (position, obs) in enumerate(chronological):
            original_length = len(obs.output)

            if rank >= window_start:
                truncated = truncate_to_tokens(
                    obs.output, config.max_tokens_per_observation, config.keep_partial_content
                )
                results.append((position, _to_masked(
                    obs,
                    output=truncated,
                    original_length=original_length,
                    relevance=1.0,
                    retained=True,
                )))
                continue

            relevance = self.calculate_relevance(obs, now)
            if obs.type == "error" or relevance > SLIDING_WINDOW_RETENTION_RELEVANCE:
                truncated = truncate_to_tokens(
                    obs.output, config.max_tokens_per_observation // 2, config.keep_partial_content
                )
                results.append((position, _to_masked(
                    obs,
                    output=truncated,
                    original_length=original_length,
                    relevance=relevance,
                    retained=True,
                    reason="Retained (high importance)",
                )))
            else:
                results.append((position, _to_masked(
                    obs,
                    output=generate_placeholder(obs),
                    original_length=original_length,
                    relevance=relevance,
                    retained=False,
                    reason="Sliding window - outside recent window",
                )))

        results.sort(key=lambda item: item[0])
        masked_list = [m for _, m in results]
        stats = calculate_stats(safe, masked_list)

        logger.debug(
            f"[MASKING] Fenêtre glissante (taille={window_size}): "
            f"{stats.masked_observations} placeholder(s), {stats.tokens_saved} tokens économisés"
        )
        return MaskingOutcome(masked=masked_list, stats=stats)
