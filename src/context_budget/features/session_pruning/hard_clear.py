"""context_budget.features.session_pruning.hard_clear

Hard clear: remplace entièrement le contenu d'un message par un placeholder
court qui conserve la provenance (ids, noms, taille d'origine).

Règles:
- `hard_cleared` est terminal: un message effacé n'est plus jamais modifié.
- Deux déclencheurs: appel d'outil expiré (faits fournis par le TTLTracker)
  ou âge du message au-delà de `max_message_age`.
- Les listes d'entrée ne sont jamais modifiées: un nouveau lot est retourné.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import AbstractSet, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from ...config.settings import HardClearOptions
from ...core.models import PrunableMessage, ToolCallTimestamp, content_length

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HardClearResult:
    messages: List[PrunableMessage]
    cleared_count: int
    cleared_tool_call_ids: FrozenSet[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_count": len(self.messages),
            "cleared_count": self.cleared_count,
            "cleared_tool_call_ids": sorted(self.cleared_tool_call_ids),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# PLACEHOLDERS
# ============================================================================

def create_tool_result_placeholder(tool_name: str, tool_call_id: str, original_length: int) -> str:
    return f"[Tool result cleared: {tool_name or 'unknown'} (tool_call_id={tool_call_id}), {original_length} chars]"


def create_assistant_placeholder(index: int, original_length: int, summary: Optional[str] = None) -> str:
    if summary:
        return f"[Assistant message #{index} cleared, {original_length} chars: {summary}]"
    return f"[Assistant message #{index} cleared, {original_length} chars]"


def create_tool_call_placeholder(tool_name: str, tool_call_id: str) -> str:
    return f"[Tool call cleared: {tool_name or 'unknown'} (tool_call_id={tool_call_id})]"


def _create_message_placeholder(index: int, role: str, original_length: int) -> str:
    return f"[Message #{index} ({role}) cleared, {original_length} chars]"


def _original_length(message: PrunableMessage) -> int:
    return message.original_length or content_length(message.content)


def _placeholder_for_expired(message: PrunableMessage, record: ToolCallTimestamp) -> str:
    if message.role == "assistant":
        return create_tool_call_placeholder(record.tool_name, record.tool_call_id)
    return create_tool_result_placeholder(record.tool_name, record.tool_call_id, _original_length(message))


def _placeholder_for_age(message: PrunableMessage) -> str:
    original_length = _original_length(message)
    if message.role == "tool":
        tool_call_id = min(message.tool_call_ids) if message.tool_call_ids else "unknown"
        return create_tool_result_placeholder(message.tool_name or "unknown", tool_call_id, original_length)
    if message.role == "assistant":
        return create_assistant_placeholder(message.index, original_length)
    return _create_message_placeholder(message.index, message.role, original_length)


# ============================================================================
# OPÉRATIONS
# ============================================================================

def hard_clear_message(message: PrunableMessage, placeholder_text: str) -> PrunableMessage:
    """Remplace le contenu; no-op si le message est déjà effacé."""

    if message.hard_cleared:
        return message
    return replace(message, content=placeholder_text, hard_cleared=True, soft_trimmed=False)


def _expired_index(expired_tool_calls: Optional[Iterable[ToolCallTimestamp]]) -> Mapping[str, ToolCallTimestamp]:
    return {record.tool_call_id: record for record in expired_tool_calls or ()}


def hard_clear_expired_tool_calls(
    messages: Optional[Sequence[PrunableMessage]],
    expired_tool_calls: Optional[Iterable[ToolCallTimestamp]],
) -> HardClearResult:
    """
    Efface les messages liés à au moins un appel d'outil expiré.

    Returns:
        HardClearResult (nouveau lot, nombre d'effacements, ids effectivement effacés)
    """
    expired = _expired_index(expired_tool_calls)
    output: List[PrunableMessage] = []
    cleared_count = 0
    cleared_ids: set[str] = set()

    for message in messages or ():
        matching = sorted(message.tool_call_ids.intersection(expired))
        if message.hard_cleared or not matching:
            output.append(message)
            continue

        output.append(hard_clear_message(message, _placeholder_for_expired(message, expired[matching[0]])))
        cleared_count += 1
        cleared_ids.update(matching)

    return HardClearResult(messages=output, cleared_count=cleared_count, cleared_tool_call_ids=frozenset(cleared_ids))


def _protected_assistant_indices(messages: Sequence[PrunableMessage], count: int) -> set[int]:
    if count <= 0:
        return set()
    indices = sorted(m.index for m in messages if m.role == "assistant")
    return set(indices[-count:])


def _is_too_old(
    message: PrunableMessage,
    options: HardClearOptions,
    protected_assistant: set[int],
    now: int,
) -> bool:
    if options.max_message_age <= 0:
        return False
    if message.role == "system" and options.keep_system_messages:
        return False
    if message.role == "user" and options.keep_user_messages:
        return False
    if message.role == "assistant" and message.index in protected_assistant:
        return False
    return now - message.timestamp > options.max_message_age


def hard_clear_old_messages(
    messages: Optional[Sequence[PrunableMessage]],
    options: Optional[HardClearOptions] = None,
    now: Optional[int] = None,
) -> HardClearResult:
    """Efface les messages plus vieux que `options.max_message_age` (ms)."""

    options = options or HardClearOptions()
    messages = list(messages or ())
    if options.max_message_age <= 0:
        return HardClearResult(messages=messages, cleared_count=0, cleared_tool_call_ids=frozenset())

    now = _now_ms() if now is None else now
    protected = _protected_assistant_indices(messages, options.keep_last_n_assistant)

    output: List[PrunableMessage] = []
    cleared_count = 0
    cleared_ids: set[str] = set()

    for message in messages:
        if message.hard_cleared or not _is_too_old(message, options, protected, now):
            output.append(message)
            continue

        output.append(hard_clear_message(message, _placeholder_for_age(message)))
        cleared_count += 1
        cleared_ids.update(message.tool_call_ids)

    return HardClearResult(messages=output, cleared_count=cleared_count, cleared_tool_call_ids=frozenset(cleared_ids))


def should_hard_clear(
    message: PrunableMessage,
    expired_ids: Optional[AbstractSet[str]],
    all_messages: Sequence[PrunableMessage],
    options: Optional[HardClearOptions] = None,
    now: Optional[int] = None,
) -> bool:
    """Prédicat composite: déjà effacé, appel expiré, puis exemptions et âge."""

    if message.hard_cleared:
        return False
    if expired_ids and message.tool_call_ids.intersection(expired_ids):
        return True

    options = options or HardClearOptions()
    protected = _protected_assistant_indices(all_messages or (), options.keep_last_n_assistant)
    return _is_too_old(message, options, protected, _now_ms() if now is None else now)


def apply_hard_clear(
    messages: Optional[Sequence[PrunableMessage]],
    expired_tool_calls: Optional[Iterable[ToolCallTimestamp]],
    options: Optional[HardClearOptions] = None,
    now: Optional[int] = None,
) -> HardClearResult:
    """Compose l'effacement par expiration puis par âge en un seul passage."""

    by_expiry = hard_clear_expired_tool_calls(messages, expired_tool_calls)
    by_age = hard_clear_old_messages(by_expiry.messages, options, now)

    cleared_count = by_expiry.cleared_count + by_age.cleared_count
    if cleared_count:
        logger.info(
            f"[HARD CLEAR] {cleared_count} message(s) effacé(s) "
            f"(expiration: {by_expiry.cleared_count}, âge: {by_age.cleared_count})"
        )

    return HardClearResult(
        messages=by_age.messages,
        cleared_count=cleared_count,
        cleared_tool_call_ids=by_expiry.cleared_tool_call_ids | by_age.cleared_tool_call_ids,
    )
