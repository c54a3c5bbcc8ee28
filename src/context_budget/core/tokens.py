"""
Comptage des tokens.

Deux régimes:
- `estimate_tokens`: estimation ceil(chars / 4). C'est le contrat utilisé par
  toutes les décisions de masking/pruning (déterministe, sans dépendance).
- `count_tokens_text` / `count_tokens_messages`: comptage précis Tiktoken,
  réservé au reporting (avant/après un passage de pruning).
"""
import math
from functools import lru_cache
from typing import List, Optional

import tiktoken

from .constants import CHARS_PER_TOKEN
from .exceptions import TokenizationError

# cl100k_base = même encodage que GPT-4
ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def get_encoding() -> "tiktoken.Encoding":
    """Charge l'encodage Tiktoken au premier usage."""
    return tiktoken.get_encoding(ENCODING_NAME)


def estimate_tokens(text: Optional[str]) -> int:
    """
    Estime le nombre de tokens d'un texte: ceil(len / 4).

    Args:
        text: Texte à estimer (None accepté, vaut "")

    Returns:
        Nombre de tokens estimé
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens_text(text: str) -> int:
    """
    Compte précisément les tokens d'un texte simple.

    Raises:
        TokenizationError: Si l'encodage échoue
    """
    if not text:
        return 0
    try:
        return len(get_encoding().encode(text))
    except Exception as e:
        raise TokenizationError(
            message=f"Erreur lors du comptage des tokens: {e}",
            content_preview=text[:200]
        )


def count_tokens_messages(messages: List[dict]) -> int:
    """
    Compte précisément les tokens d'une liste de messages au format OpenAI.

    Args:
        messages: Liste de messages (role/content, content multimodal accepté)

    Returns:
        Nombre de tokens

    Raises:
        TokenizationError: Si une erreur survient lors du comptage
    """
    if not messages:
        return 0

    try:
        encoding = get_encoding()
        token_count = 0

        for message in messages:
            token_count += 3  # Tokens de début/role/fin
            role = message.get("role") or ""
            content = message.get("content") or ""

            token_count += len(encoding.encode(role))

            if isinstance(content, str):
                token_count += len(encoding.encode(content))
            elif isinstance(content, list):
                for part in content:
                    if not isinstance(part, dict):
                        continue
                    if part.get("type") == "text":
                        text = part.get("text") or ""
                        token_count += len(encoding.encode(text))
                    elif part.get("type") == "image_url":
                        # Estimation: ~512 tokens par image
                        token_count += 512

        token_count += 3  # Tokens de fin
        return token_count
    except Exception as e:
        raise TokenizationError(
            message=f"Erreur lors du comptage des tokens: {e}",
            content_preview=str(messages)[:200]
        )
