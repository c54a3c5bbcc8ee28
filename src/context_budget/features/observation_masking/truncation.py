"""Réduction de contenu: troncature tête/queue, extraction partielle, résumés.

Garantie: `truncate_to_tokens(content, n)` retourne toujours un texte dont
l'estimation (ceil(chars / 4)) est <= n.
"""

from __future__ import annotations

import math
from typing import Sequence

from ...config.settings import MaskingConfig
from ...core.constants import CHARS_PER_TOKEN
from ...core.models import Observation, OutputType
from ...core.tokens import estimate_tokens
from .relevance import score_line


CHAR_TRUNCATION_MARKER = "\n... [truncated]\n"


def truncate_to_tokens(content: str, max_tokens: int, keep_partial_content: bool = True) -> str:
    """Tronque `content` pour tenir dans `max_tokens` (tokens estimés).

    - contenu déjà sous le plafond: inchangé
    - `keep_partial_content` False: notice d'une ligne
    - sinon 60% des lignes cibles en tête, 40% en queue; si les lignes sont
      trop peu nombreuses (ou trop longues), découpe par caractères.
    """

    content = content or ""
    current_tokens = estimate_tokens(content)
    if current_tokens <= max_tokens:
        return content

    max_chars = max(0, max_tokens) * CHARS_PER_TOKEN

    if not keep_partial_content:
        notice = f"[Content truncated: {current_tokens} tokens exceeded {max_tokens} limit]"
        return notice[:max_chars]

    lines = content.split("\n")
    target_lines = max_tokens // CHARS_PER_TOKEN

    if target_lines > 0 and len(lines) > target_lines:
        head_count = math.floor(target_lines * 0.6)
        tail_count = math.floor(target_lines * 0.4)
        truncated_count = len(lines) - head_count - tail_count
        head = lines[:head_count]
        tail = lines[len(lines) - tail_count:] if tail_count > 0 else []
        result = "\n".join([*head, f"... [{truncated_count} lines truncated] ...", *tail])
        if len(result) <= max_chars:
            return result

    return _truncate_chars(content, max_chars)


def _truncate_chars(content: str, max_chars: int) -> str:
    available = max_chars - len(CHAR_TRUNCATION_MARKER)
    if available <= 0:
        return content[:max_chars]

    head_chars = math.ceil(available * 0.6)
    tail_chars = available - head_chars
    tail = content[len(content) - tail_chars:] if tail_chars > 0 else ""
    return content[:head_chars] + CHAR_TRUNCATION_MARKER + tail


def extract_important_content(
    obs: Observation,
    relevance: float,
    config: MaskingConfig,
    query_keywords: Sequence[str],
) -> str:
    """Extraction partielle: tête + queue + lignes intérieures les mieux notées."""

    output = obs.output or ""
    head_tail = config.head_tail_lines
    lines = output.split("\n")

    if len(lines) <= head_tail * 2:
        return output

    head = lines[:head_tail]
    tail = lines[len(lines) - head_tail:]
    middle = [
        (idx, line, score_line(line, obs.type, config, query_keywords))
        for idx, line in enumerate(lines[head_tail:len(lines) - head_tail], start=head_tail)
    ]

    keep_count = math.floor(relevance * 10)
    # sorted() est stable: à score égal, l'ordre d'origine départage
    ranked = sorted(middle, key=lambda item: -item[2])[:keep_count]
    important = [line for _, line, _ in sorted(ranked, key=lambda item: item[0])]

    result = list(head)
    if middle:
        result.append(f"... ({len(middle) - len(important)} lines masked) ...")
    result.extend(important)
    result.extend(tail)

    return "\n".join(result)


def generate_mask_summary(obs: Observation, reason: str) -> str:
    output = obs.output or ""
    lines = len(output.split("\n"))
    tokens = estimate_tokens(output)
    return f"[MASKED: {obs.tool_name} output - {lines} lines, ~{tokens} tokens, reason: {reason}]"


def generate_placeholder(obs: Observation) -> str:
    """Placeholder dense pour le masking par fenêtre glissante."""

    output = obs.output or ""
    lines = len(output.split("\n"))
    tokens = estimate_tokens(output)
    summary = _type_summary(obs.type, obs.input or "", output)
    return f"[{obs.tool_name}{summary} | {lines} lines, ~{tokens} tokens]"


def _type_summary(output_type: OutputType, input_text: str, output: str) -> str:
    if output_type == "file_content" and input_text:
        return f" - {input_text}"
    if output_type == "search_result":
        return f" - {output.count(chr(10))} matches"
    if output_type == "command_output":
        first_line = output.split("\n")[0].strip()
        if first_line and len(first_line) < 50:
            return f": {first_line}"
    return ""
