"""context_budget.features.session_pruning.soft_trim

Soft trim: réduit le contenu volumineux d'un message en conservant la tête
et la queue, sans supprimer le message.

Règles:
- un message `hard_cleared` n'est jamais modifié;
- un message déjà `soft_trimmed` n'est jamais rogné une seconde fois;
- les listes d'entrée ne sont jamais modifiées: un nouveau lot est retourné.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from ...config.settings import SoftTrimOptions
from ...core.models import MessageContent, PrunableMessage, content_length

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SoftTrimResult:
    messages: List[PrunableMessage]
    trimmed_count: int
    total_removed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_count": len(self.messages),
            "trimmed_count": self.trimmed_count,
            "total_removed": self.total_removed,
        }


def soft_trim_string(content: str, head_chars: int, tail_chars: int) -> str:
    """Garde `head_chars` en tête et `tail_chars` en queue, avec un marqueur."""

    if not content:
        return content or ""
    head_chars = max(0, head_chars)
    tail_chars = max(0, tail_chars)
    if len(content) <= head_chars + tail_chars:
        return content

    removed = len(content) - head_chars - tail_chars
    tail = content[len(content) - tail_chars:] if tail_chars > 0 else ""
    trimmed = f"{content[:head_chars]}\n\n... [trimmed {removed} chars] ...\n\n{tail}"
    # Le marqueur ne doit jamais allonger le contenu
    return trimmed if len(trimmed) < len(content) else content


def soft_trim_content(content: MessageContent, options: Optional[SoftTrimOptions] = None) -> MessageContent:
    """Rogne un contenu selon sa forme (None, texte, ou parts multimodales)."""

    options = options or SoftTrimOptions()

    if content is None:
        return None

    if isinstance(content, str):
        if len(content) <= options.min_prunable_chars:
            return content
        return soft_trim_string(content, options.head_chars, options.tail_chars)

    if isinstance(content, list):
        parts = []
        for part in content:
            if (
                isinstance(part, dict)
                and part.get("type") == "text"
                and isinstance(part.get("text"), str)
                and len(part["text"]) > options.min_prunable_chars
            ):
                trimmed_part = dict(part)
                trimmed_part["text"] = soft_trim_string(part["text"], options.head_chars, options.tail_chars)
                parts.append(trimmed_part)
            else:
                parts.append(part)
        return parts

    return content


def soft_trim_message(message: PrunableMessage, options: Optional[SoftTrimOptions] = None) -> PrunableMessage:
    """Applique le soft trim et marque le message; no-op si déjà rogné ou effacé."""

    if message.soft_trimmed or message.hard_cleared:
        return message
    return replace(message, content=soft_trim_content(message.content, options), soft_trimmed=True)


def _last_assistant_indices(messages: Sequence[PrunableMessage], count: int) -> set[int]:
    if count <= 0:
        return set()
    indices = sorted(m.index for m in messages if m.role == "assistant")
    return set(indices[-count:])


def _is_role_exempt(
    message: PrunableMessage,
    *,
    keep_system_messages: bool,
    keep_user_messages: bool,
    protected_assistant: set[int],
) -> bool:
    if message.role == "system" and keep_system_messages:
        return True
    if message.role == "user" and keep_user_messages:
        return True
    if message.role == "assistant" and message.index in protected_assistant:
        return True
    return False


def should_soft_trim(
    message: PrunableMessage,
    all_messages: Sequence[PrunableMessage],
    options: Optional[SoftTrimOptions] = None,
) -> bool:
    """Le message est-il éligible au soft trim ?"""

    options = options or SoftTrimOptions()
    return _should_soft_trim(
        message,
        options,
        _last_assistant_indices(all_messages or (), options.keep_last_n_assistant),
    )


def _should_soft_trim(message: PrunableMessage, options: SoftTrimOptions, protected_assistant: set[int]) -> bool:
    if message.soft_trimmed or message.hard_cleared:
        return False
    if _is_role_exempt(
        message,
        keep_system_messages=options.keep_system_messages,
        keep_user_messages=options.keep_user_messages,
        protected_assistant=protected_assistant,
    ):
        return False
    if isinstance(message.content, str):
        return len(message.content) > options.min_prunable_chars
    if isinstance(message.content, list):
        return any(
            isinstance(part, dict)
            and part.get("type") == "text"
            and isinstance(part.get("text"), str)
            and len(part["text"]) > options.min_prunable_chars
            for part in message.content
        )
    return False


def soft_trim_messages(
    messages: Optional[Sequence[PrunableMessage]],
    options: Optional[SoftTrimOptions] = None,
) -> SoftTrimResult:
    """
    Applique le soft trim sur un lot en respectant les exemptions.

    Returns:
        SoftTrimResult (nouveau lot, nombre de messages rognés, caractères retirés)
    """
    options = options or SoftTrimOptions()
    messages = list(messages or ())
    protected = _last_assistant_indices(messages, options.keep_last_n_assistant)

    output: List[PrunableMessage] = []
    trimmed_count = 0
    total_removed = 0

    for message in messages:
        if not _should_soft_trim(message, options, protected):
            output.append(message)
            continue

        trimmed = soft_trim_message(message, options)
        removed = content_length(message.content) - content_length(trimmed.content)
        if removed > 0:
            trimmed_count += 1
            total_removed += removed
        output.append(trimmed)

    if trimmed_count:
        logger.debug(f"[SOFT TRIM] {trimmed_count} message(s) rogné(s), {total_removed} caractères retirés")

    return SoftTrimResult(messages=output, trimmed_count=trimmed_count, total_removed=total_removed)
