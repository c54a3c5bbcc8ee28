"""
Cœur métier de Context Budget.
Modules indépendants sans dépendances vers les couches config/features.
"""

from .exceptions import (
    ContextBudgetError,
    ConfigurationError,
    TokenizationError,
)
from .constants import (
    CHARS_PER_TOKEN,
    DEFAULT_TTL_MS,
    DEFAULT_TYPE_PRIORITIES,
    DEFAULT_IMPORTANT_KEYWORDS,
    DEFAULT_ERROR_PATTERNS,
)
from .tokens import estimate_tokens, count_tokens_text, count_tokens_messages
from .models import (
    OUTPUT_TYPES,
    MESSAGE_ROLES,
    OutputType,
    MessageRole,
    MessageContent,
    Observation,
    MaskedObservation,
    MaskingStats,
    ToolCallTimestamp,
    PrunableMessage,
    content_length,
)

__all__ = [
    # Exceptions
    "ContextBudgetError",
    "ConfigurationError",
    "TokenizationError",
    # Constants
    "CHARS_PER_TOKEN",
    "DEFAULT_TTL_MS",
    "DEFAULT_TYPE_PRIORITIES",
    "DEFAULT_IMPORTANT_KEYWORDS",
    "DEFAULT_ERROR_PATTERNS",
    # Tokens
    "estimate_tokens",
    "count_tokens_text",
    "count_tokens_messages",
    # Models
    "OUTPUT_TYPES",
    "MESSAGE_ROLES",
    "OutputType",
    "MessageRole",
    "MessageContent",
    "Observation",
    "MaskedObservation",
    "MaskingStats",
    "ToolCallTimestamp",
    "PrunableMessage",
    "content_length",
]
