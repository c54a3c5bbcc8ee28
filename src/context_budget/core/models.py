"""
Dataclasses métier pour Context Budget.

Tous les enregistrements sont immuables (frozen): les transformations
retournent de nouvelles instances via `dataclasses.replace`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Literal, Optional, Union, get_args


OutputType = Literal[
    "code",
    "error",
    "log",
    "file_content",
    "search_result",
    "command_output",
    "metadata",
    "unknown",
]
OUTPUT_TYPES: tuple[str, ...] = get_args(OutputType)

MessageRole = Literal["system", "user", "assistant", "tool"]
MESSAGE_ROLES: tuple[str, ...] = get_args(MessageRole)

# Contenu multimodal au format OpenAI: {"type": "text", "text": ...}, {"type": "image_url", ...}
ContentPart = Dict[str, object]
MessageContent = Union[str, List[ContentPart], None]


@dataclass(frozen=True)
class Observation:
    """Sortie d'un appel d'outil, avant éviction."""
    id: str
    tool_name: str
    input: str = ""
    output: str = ""
    timestamp: int = 0  # epoch ms
    type: OutputType = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tool_name": self.tool_name,
            "input": self.input,
            "output": self.output,
            "timestamp": self.timestamp,
            "type": self.type,
        }


@dataclass(frozen=True)
class MaskedObservation(Observation):
    """Observation accompagnée du résultat du masking."""
    original_length: int = 0
    masked_length: int = 0
    relevance_score: float = 0.0
    was_retained: bool = True
    mask_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            "original_length": self.original_length,
            "masked_length": self.masked_length,
            "relevance_score": round(self.relevance_score, 4),
            "was_retained": self.was_retained,
        })
        if self.mask_reason:
            result["mask_reason"] = self.mask_reason
        return result


@dataclass(frozen=True)
class MaskingStats:
    """Statistiques d'un passage de masking (tokens estimés)."""
    total_observations: int = 0
    retained_observations: int = 0
    masked_observations: int = 0
    original_tokens: int = 0
    masked_tokens: int = 0
    tokens_saved: int = 0
    savings_percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_observations": self.total_observations,
            "retained_observations": self.retained_observations,
            "masked_observations": self.masked_observations,
            "original_tokens": self.original_tokens,
            "masked_tokens": self.masked_tokens,
            "tokens_saved": self.tokens_saved,
            "savings_percentage": round(self.savings_percentage, 2),
        }


@dataclass(frozen=True)
class ToolCallTimestamp:
    """Enregistrement TTL d'un appel d'outil."""
    tool_call_id: str
    tool_name: str
    called_at: int  # epoch ms
    message_index: int
    pruned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "called_at": self.called_at,
            "message_index": self.message_index,
            "pruned": self.pruned,
        }


@dataclass(frozen=True)
class PrunableMessage:
    """Un tour de l'historique de conversation conservé.

    Invariants:
    - `hard_cleared` est terminal: le contenu ne change plus ensuite.
    - `soft_trimmed` n'est appliqué qu'une seule fois par message.
    """
    index: int
    role: MessageRole
    content: MessageContent
    original_length: int = 0
    timestamp: int = 0  # epoch ms
    tool_call_ids: FrozenSet[str] = field(default_factory=frozenset)
    soft_trimmed: bool = False
    hard_cleared: bool = False
    tool_name: Optional[str] = None

    @classmethod
    def create(
        cls,
        index: int,
        role: MessageRole,
        content: MessageContent,
        timestamp: int = 0,
        tool_call_ids: Iterable[str] = (),
        tool_name: Optional[str] = None,
    ) -> "PrunableMessage":
        """Crée un message en calculant `original_length` depuis le contenu."""
        return cls(
            index=index,
            role=role,
            content=content,
            original_length=content_length(content),
            timestamp=timestamp,
            tool_call_ids=frozenset(tool_call_ids),
            tool_name=tool_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "role": self.role,
            "content": self.content,
            "original_length": self.original_length,
            "timestamp": self.timestamp,
            "tool_call_ids": sorted(self.tool_call_ids),
            "soft_trimmed": self.soft_trimmed,
            "hard_cleared": self.hard_cleared,
            "tool_name": self.tool_name,
        }


def content_length(content: MessageContent) -> int:
    """Longueur textuelle d'un contenu (somme des parts texte si multimodal)."""
    if content is None:
        return 0
    if isinstance(content, str):
        return len(content)
    if isinstance(content, list):
        total = 0
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                text = part.get("text")
                if isinstance(text, str):
                    total += len(text)
        return total
    return 0
