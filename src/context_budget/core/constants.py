"""
Constantes globales pour Context Budget.
"""

# ============================================================================
# ESTIMATION DE TOKENS
# ============================================================================
CHARS_PER_TOKEN = 4  # Contrat fixe: tokens = ceil(chars / 4)

# ============================================================================
# OBSERVATION MASKING
# ============================================================================
DEFAULT_MAX_TOKENS_PER_OBSERVATION = 2000
DEFAULT_TOTAL_TOKEN_BUDGET = 8000
DEFAULT_MIN_RELEVANCE_THRESHOLD = 0.2
DEFAULT_HEAD_TAIL_LINES = 10
DEFAULT_SLIDING_WINDOW_SIZE = 5

# Fenêtre de récence pour le bonus de pertinence (5 minutes)
RECENCY_WINDOW_MS = 5 * 60 * 1000

# Seuils de rétention intégrale
FULL_RETENTION_RELEVANCE = 0.8
SLIDING_WINDOW_RETENTION_RELEVANCE = 0.9

# En dessous de ce budget, une troncature n'a plus de sens
MIN_TRUNCATION_TOKENS = 100

# Priorités par type de sortie (plus haut = plus important)
DEFAULT_TYPE_PRIORITIES = {
    "error": 1.0,
    "code": 0.9,
    "file_content": 0.8,
    "search_result": 0.7,
    "command_output": 0.6,
    "log": 0.4,
    "metadata": 0.3,
    "unknown": 0.5,
}

DEFAULT_IMPORTANT_KEYWORDS = (
    "error",
    "exception",
    "fail",
    "undefined",
    "null",
    "cannot",
    "unable",
    "warning",
    "critical",
    "fatal",
    "bug",
    "issue",
    "fix",
    "todo",
    "fixme",
    "hack",
)

# Compilés en re.IGNORECASE par MaskingConfig
DEFAULT_ERROR_PATTERNS = (
    r"error",
    r"exception",
    r"failed",
    r"traceback",
    r"stack trace",
    r"at line \d+",
    r"syntax error",
    r"type error",
    r"reference error",
    r"not found",
    r"permission denied",
)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "can", "this", "that", "these",
    "those", "i", "you", "he", "she", "it", "we", "they", "what", "which",
    "who", "when", "where", "why", "how", "all", "each", "every", "both",
    "few", "more", "most", "other", "some", "such", "no", "nor", "not",
    "only", "own", "same", "so", "than", "too", "very", "just", "also",
})

# ============================================================================
# SESSION PRUNING (TTL / SOFT TRIM / HARD CLEAR)
# ============================================================================
DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_CLEANUP_MAX_AGE_MS = 60 * 60 * 1000

DEFAULT_SOFT_TRIM_CONFIG = {
    "head_chars": 1500,
    "tail_chars": 1500,
    "min_prunable_chars": 4000,
    "keep_system_messages": True,
    "keep_user_messages": True,
    "keep_last_n_assistant": 2,
}

DEFAULT_HARD_CLEAR_CONFIG = {
    "max_message_age": 0,  # 0 = désactivé
    "keep_system_messages": True,
    "keep_user_messages": True,
    "keep_last_n_assistant": 2,
}
