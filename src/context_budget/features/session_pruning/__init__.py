"""Session pruning (historique accumulé).

- TTLTracker: quels appels d'outils sont assez anciens pour être évincés
- Hard clear: remplacement intégral par un placeholder (terminal)
- Soft trim: réduction tête/queue des messages volumineux restants
"""

from .chat_adapter import (
    count_history_tokens,
    from_chat_messages,
    register_tool_calls,
    to_chat_messages,
)
from .hard_clear import (
    HardClearResult,
    apply_hard_clear,
    create_assistant_placeholder,
    create_tool_call_placeholder,
    create_tool_result_placeholder,
    hard_clear_expired_tool_calls,
    hard_clear_message,
    hard_clear_old_messages,
    should_hard_clear,
)
from .soft_trim import (
    SoftTrimResult,
    should_soft_trim,
    soft_trim_content,
    soft_trim_message,
    soft_trim_messages,
    soft_trim_string,
)
from .ttl_tracker import TTLStats, TTLTracker

__all__ = [
    # TTL
    "TTLStats",
    "TTLTracker",
    # Soft trim
    "SoftTrimResult",
    "should_soft_trim",
    "soft_trim_content",
    "soft_trim_message",
    "soft_trim_messages",
    "soft_trim_string",
    # Hard clear
    "HardClearResult",
    "apply_hard_clear",
    "create_assistant_placeholder",
    "create_tool_call_placeholder",
    "create_tool_result_placeholder",
    "hard_clear_expired_tool_calls",
    "hard_clear_message",
    "hard_clear_old_messages",
    "should_hard_clear",
    # Chat adapter
    "count_history_tokens",
    "from_chat_messages",
    "register_tool_calls",
    "to_chat_messages",
]
