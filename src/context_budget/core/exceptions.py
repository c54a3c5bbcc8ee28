"""
Exceptions personnalisées pour Context Budget.
"""


class ContextBudgetError(Exception):
    """Exception de base pour toutes les erreurs de la bibliothèque."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(ContextBudgetError):
    """Erreur de configuration (fichier manquant, valeur ou regex invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class TokenizationError(ContextBudgetError):
    """Erreur lors du comptage précis de tokens."""

    def __init__(self, message: str, content_preview: str = None):
        details = {}
        if content_preview:
            details["preview"] = content_preview[:100]
        super().__init__(
            message=message,
            code="tokenization_error",
            details=details
        )
