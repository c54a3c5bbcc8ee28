"""Scoring de pertinence des observations et de leurs lignes.

Transformation pure: aucune I/O, le temps est fourni par l'appelant.
"""

from __future__ import annotations

import re
from typing import Sequence

from ...config.settings import MaskingConfig
from ...core.constants import FULL_RETENTION_RELEVANCE, RECENCY_WINDOW_MS, STOP_WORDS
from ...core.models import Observation, OutputType


_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_DECLARATION_RE = re.compile(r"^(function|class|const|let|var|import|export|def|async)\s")
_NUMBER_RE = re.compile(r"\d+(\.\d+)?%?")


def extract_keywords(text: str | None) -> tuple[str, ...]:
    """Extrait les mots-clés d'une requête (ensemble ordonné, sans stop words)."""

    cleaned = _PUNCTUATION_RE.sub(" ", (text or "").lower())
    seen: dict[str, None] = {}
    for word in cleaned.split():
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        seen.setdefault(word, None)
    return tuple(seen)


def score_relevance(
    obs: Observation,
    config: MaskingConfig,
    query_keywords: Sequence[str],
    now: int,
) -> float:
    """Score de pertinence dans [0, 1].

    Composantes:
    - priorité du type * 0.3
    - mots-clés de requête: (trouvés / total) * 0.4, ou 0.2 sans requête
    - mots-clés importants: min(n * 0.05, 0.2)
    - premier pattern d'erreur trouvé: +0.3
    - récence: min(1, max(0, 1 - âge / 5 min)) * 0.1 (horodatage futur plafonné)
    """

    content = (obs.output or "").lower()
    input_text = (obs.input or "").lower()

    score = config.type_priorities.get(obs.type, config.type_priorities["unknown"]) * 0.3

    if query_keywords:
        matches = sum(1 for kw in query_keywords if kw in content or kw in input_text)
        score += (matches / len(query_keywords)) * 0.4
    else:
        score += 0.2

    important = sum(1 for kw in config.important_keywords if kw in content)
    score += min(important * 0.05, 0.2)

    if any(pattern.search(content) for pattern in config.error_patterns):
        score += 0.3

    age = now - obs.timestamp
    score += min(1.0, max(0.0, 1 - age / RECENCY_WINDOW_MS)) * 0.1

    return min(max(score, 0.0), 1.0)


def score_line(
    line: str,
    output_type: OutputType,
    config: MaskingConfig,
    query_keywords: Sequence[str],
) -> float:
    """Score local d'une ligne pour l'extraction partielle."""

    lower = line.lower().strip()
    if not lower:
        return 0.0

    score = 0.0
    if any(pattern.search(lower) for pattern in config.error_patterns):
        score += 2

    for keyword in config.important_keywords:
        if keyword in lower:
            score += 0.5

    for keyword in query_keywords:
        if keyword in lower:
            score += 1

    if output_type in ("code", "file_content") and _DECLARATION_RE.match(lower):
        score += 1

    if _NUMBER_RE.search(lower):
        score += 0.3

    return score


def should_retain_fully(obs: Observation, relevance: float, config: MaskingConfig) -> bool:
    """Erreurs, forte pertinence (> 0.8) ou pattern d'erreur => rétention intégrale."""

    if obs.type == "error":
        return True
    if relevance > FULL_RETENTION_RELEVANCE:
        return True
    output = obs.output or ""
    return any(pattern.search(output) for pattern in config.error_patterns)
