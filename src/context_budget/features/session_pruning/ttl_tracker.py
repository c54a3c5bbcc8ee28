"""context_budget.features.session_pruning.ttl_tracker

Suivi TTL des appels d'outils.

Le tracker possède ses enregistrements (un par tool_call_id) et ne touche
jamais au contenu des messages: il répond seulement à "cet appel est-il assez
ancien pour être évincé ?". Le temps est fourni par l'appelant (`now`), aucun
timer interne.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from ...config.settings import TTLConfig
from ...core.constants import DEFAULT_CLEANUP_MAX_AGE_MS, DEFAULT_TTL_MS
from ...core.models import ToolCallTimestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTLStats:
    total_tool_calls: int
    pruned_count: int
    active_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tool_calls": self.total_tool_calls,
            "pruned_count": self.pruned_count,
            "active_count": self.active_count,
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class TTLTracker:
    """
    Registre des appels d'outils avec expiration.

    Un appel est expiré quand `now - called_at > ttl_ms`. Les enregistrements
    retournés sont des instantanés immuables.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, cleanup_max_age_ms: int = DEFAULT_CLEANUP_MAX_AGE_MS):
        self.ttl_ms = ttl_ms
        self.cleanup_max_age_ms = cleanup_max_age_ms
        self._records: Dict[str, ToolCallTimestamp] = {}

    @classmethod
    def from_config(cls, config: TTLConfig) -> "TTLTracker":
        return cls(ttl_ms=config.ttl_ms, cleanup_max_age_ms=config.cleanup_max_age_ms)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, tool_call_id: object) -> bool:
        return tool_call_id in self._records

    def get(self, tool_call_id: str) -> Optional[ToolCallTimestamp]:
        return self._records.get(tool_call_id)

    def register_tool_call(
        self,
        tool_call_id: str,
        tool_name: str,
        message_index: int,
        now: Optional[int] = None,
    ) -> ToolCallTimestamp:
        """Enregistre un appel (un enregistrement existant est écrasé)."""
        record = ToolCallTimestamp(
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            called_at=_now_ms() if now is None else now,
            message_index=message_index,
        )
        self._records[tool_call_id] = record
        return record

    def _elapsed(self, record: ToolCallTimestamp, now: Optional[int]) -> int:
        return (_now_ms() if now is None else now) - record.called_at

    def is_expired(self, tool_call_id: str, now: Optional[int] = None) -> bool:
        record = self._records.get(tool_call_id)
        if record is None:
            return False
        return self._elapsed(record, now) > self.ttl_ms

    def get_expired_tool_calls(self, now: Optional[int] = None) -> List[ToolCallTimestamp]:
        """Appels expirés et pas encore évincés."""
        now = _now_ms() if now is None else now
        return [
            record for record in self._records.values()
            if not record.pruned and self._elapsed(record, now) > self.ttl_ms
        ]

    def get_expiring_tool_calls(self, threshold_ms: int, now: Optional[int] = None) -> List[ToolCallTimestamp]:
        """Appels non expirés dont il reste au plus `threshold_ms` avant expiration."""
        now = _now_ms() if now is None else now
        expiring = []
        for record in self._records.values():
            if record.pruned:
                continue
            elapsed = self._elapsed(record, now)
            if elapsed <= 0 or elapsed > self.ttl_ms:
                continue
            if self.ttl_ms - elapsed <= threshold_ms:
                expiring.append(record)
        return expiring

    def mark_pruned(self, tool_call_id: str) -> None:
        record = self._records.get(tool_call_id)
        if record is None or record.pruned:
            return
        self._records[tool_call_id] = replace(record, pruned=True)

    def mark_many_pruned(self, tool_call_ids: Iterable[str]) -> None:
        for tool_call_id in tool_call_ids or ():
            self.mark_pruned(tool_call_id)

    def get_time_remaining(self, tool_call_id: str, now: Optional[int] = None) -> int:
        record = self._records.get(tool_call_id)
        if record is None:
            return 0
        return max(0, self.ttl_ms - self._elapsed(record, now))

    def get_tool_calls_for_message(self, message_index: int) -> List[ToolCallTimestamp]:
        return [r for r in self._records.values() if r.message_index == message_index]

    def get_expired_message_indices(self, now: Optional[int] = None) -> List[int]:
        """Index distincts (croissants) des messages ayant un appel expiré non évincé."""
        return sorted({r.message_index for r in self.get_expired_tool_calls(now)})

    def cleanup(self, max_age_ms: Optional[int] = None, now: Optional[int] = None) -> int:
        """Supprime les enregistrements évincés plus vieux que `max_age_ms`
        (par défaut `cleanup_max_age_ms` du tracker).

        Returns:
            Nombre d'enregistrements supprimés
        """
        now = _now_ms() if now is None else now
        max_age_ms = self.cleanup_max_age_ms if max_age_ms is None else max_age_ms
        stale = [
            tool_call_id for tool_call_id, record in self._records.items()
            if record.pruned and now - record.called_at > max_age_ms
        ]
        for tool_call_id in stale:
            del self._records[tool_call_id]
        if stale:
            logger.debug(f"[TTL] {len(stale)} enregistrement(s) évincé(s) supprimé(s)")
        return len(stale)

    def get_stats(self) -> TTLStats:
        pruned = sum(1 for r in self._records.values() if r.pruned)
        return TTLStats(
            total_tool_calls=len(self._records),
            pruned_count=pruned,
            active_count=len(self._records) - pruned,
        )
