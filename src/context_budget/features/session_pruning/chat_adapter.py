"""context_budget.features.session_pruning.chat_adapter

Pont entre l'historique au format OpenAI (`messages` de /chat/completions)
et les `PrunableMessage` manipulés par le pruning.

Préserve strictement l'intégrité du tool-calling:
- ne jamais supprimer/ajouter/réordonner des messages,
- ne jamais modifier `assistant.tool_calls` ni `tool.tool_call_id`,
- réécrire uniquement `content`.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

from ...core.models import MESSAGE_ROLES, MessageContent, PrunableMessage
from ...core.tokens import count_tokens_messages
from .ttl_tracker import TTLTracker


ChatMessage = dict[str, object]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _normalize_role(role: object) -> str:
    if role == "function":
        return "tool"
    if isinstance(role, str) and role in MESSAGE_ROLES:
        return role
    # Rôle inconnu: traité comme user (exempté par défaut)
    return "user"


def _normalize_content(content: object) -> MessageContent:
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, list):
        return [part for part in content if isinstance(part, dict)]
    return None


def _tool_call_ids_of(msg: ChatMessage) -> list[tuple[str, Optional[str]]]:
    """Liste (id, tool_name) des `tool_calls` d'un message assistant."""

    tool_calls_obj = msg.get("tool_calls")
    if msg.get("role") != "assistant" or not isinstance(tool_calls_obj, list):
        return []

    calls: list[tuple[str, Optional[str]]] = []
    for tc in tool_calls_obj:
        if not isinstance(tc, dict):
            continue
        tc_id = tc.get("id")
        if not isinstance(tc_id, str) or not tc_id:
            continue
        function_obj = tc.get("function")
        name = function_obj.get("name") if isinstance(function_obj, dict) else None
        calls.append((tc_id, name if isinstance(name, str) and name else None))
    return calls


def _tool_result_id_of(msg: ChatMessage) -> Optional[str]:
    if msg.get("role") not in ("tool", "function"):
        return None
    tool_call_id = msg.get("tool_call_id")
    return tool_call_id if isinstance(tool_call_id, str) and tool_call_id else None


def from_chat_messages(
    messages: Optional[Sequence[ChatMessage]],
    now: Optional[int] = None,
    timestamps: Optional[Sequence[int]] = None,
) -> list[PrunableMessage]:
    """Construit les `PrunableMessage` d'un historique OpenAI.

    Horodatage (ordre): `timestamps[i]`, puis `msg["timestamp"]` (int, ms), puis `now`.
    """

    now = _now_ms() if now is None else now
    messages = list(messages or ())

    id_to_tool_name: dict[str, str] = {}
    for msg in messages:
        for tc_id, name in _tool_call_ids_of(msg):
            if name is not None:
                id_to_tool_name[tc_id] = name

    output: list[PrunableMessage] = []
    for index, msg in enumerate(messages):
        if timestamps is not None and index < len(timestamps):
            timestamp = timestamps[index]
        else:
            ts_obj = msg.get("timestamp")
            timestamp = ts_obj if isinstance(ts_obj, int) and not isinstance(ts_obj, bool) else now

        call_ids = [tc_id for tc_id, _ in _tool_call_ids_of(msg)]
        tool_name = None
        result_id = _tool_result_id_of(msg)
        if result_id is not None:
            call_ids.append(result_id)
            tool_name = id_to_tool_name.get(result_id)

        output.append(PrunableMessage.create(
            index=index,
            role=_normalize_role(msg.get("role")),
            content=_normalize_content(msg.get("content")),
            timestamp=timestamp,
            tool_call_ids=call_ids,
            tool_name=tool_name,
        ))

    return output


def to_chat_messages(
    original: Sequence[ChatMessage],
    pruned: Sequence[PrunableMessage],
) -> list[ChatMessage]:
    """Réécrit `content` des messages d'origine (copies) depuis les messages prunés."""

    by_index = {message.index: message for message in pruned or ()}
    output: list[ChatMessage] = []
    for index, msg in enumerate(original or ()):
        copy = dict(msg)
        pruned_msg = by_index.get(index)
        if pruned_msg is not None and (pruned_msg.soft_trimmed or pruned_msg.hard_cleared):
            copy["content"] = pruned_msg.content
        output.append(copy)
    return output


def register_tool_calls(
    tracker: TTLTracker,
    messages: Optional[Sequence[ChatMessage]],
    now: Optional[int] = None,
) -> int:
    """Enregistre dans le tracker les appels d'outils pas encore suivis.

    L'index retenu est celui du message `tool` portant le résultat, sinon
    celui du message assistant émetteur.

    Returns:
        Nombre d'appels nouvellement enregistrés
    """

    messages = list(messages or ())
    result_index: dict[str, int] = {}
    for index, msg in enumerate(messages):
        result_id = _tool_result_id_of(msg)
        if result_id is not None:
            result_index.setdefault(result_id, index)

    registered = 0
    for index, msg in enumerate(messages):
        for tc_id, name in _tool_call_ids_of(msg):
            if tc_id in tracker:
                continue
            tracker.register_tool_call(tc_id, name or "unknown", result_index.get(tc_id, index), now=now)
            registered += 1
    return registered


def count_history_tokens(messages: Sequence[PrunableMessage]) -> int:
    """Comptage Tiktoken précis d'un historique (reporting avant/après pruning)."""

    return count_tokens_messages([
        {"role": message.role, "content": message.content}
        for message in messages or ()
    ])
