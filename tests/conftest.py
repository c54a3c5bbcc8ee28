"""
Configuration des tests pytest.
"""
import os
import sys

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from context_budget.core.models import Observation, PrunableMessage  # noqa: E402


# Instant de référence fixe (ms) pour des tests déterministes
NOW = 1_700_000_000_000


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_observation():
    """Fabrique d'observations avec valeurs par défaut."""

    def _make(obs_id, output="", *, tool_name="tool", input="", timestamp=NOW, type="unknown"):
        return Observation(
            id=obs_id,
            tool_name=tool_name,
            input=input,
            output=output,
            timestamp=timestamp,
            type=type,
        )

    return _make


@pytest.fixture
def make_message():
    """Fabrique de PrunableMessage."""

    def _make(index, role, content, *, timestamp=NOW, tool_call_ids=(), tool_name=None):
        return PrunableMessage.create(
            index=index,
            role=role,
            content=content,
            timestamp=timestamp,
            tool_call_ids=tool_call_ids,
            tool_name=tool_name,
        )

    return _make


@pytest.fixture
def tiktoken_encoding():
    """Encodage Tiktoken; le test est ignoré si l'encodage est indisponible (hors ligne)."""
    from context_budget.core.tokens import get_encoding

    try:
        return get_encoding()
    except Exception as e:
        pytest.skip(f"Encodage tiktoken indisponible: {e}")


@pytest.fixture
def sample_chat_messages():
    """Historique OpenAI avec deux tours d'outils."""
    return [
        {"role": "system", "content": "Tu es un assistant de code."},
        {"role": "user", "content": "Lis le fichier puis cherche les TODO."},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "call_1", "type": "function", "function": {"name": "read_file", "arguments": "{}"}},
            ],
        },
        {"role": "tool", "tool_call_id": "call_1", "content": "A" * 6000},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "call_2", "type": "function", "function": {"name": "grep", "arguments": "{}"}},
            ],
        },
        {"role": "tool", "tool_call_id": "call_2", "content": "B" * 6000},
        {"role": "assistant", "content": "Voici le résultat."},
    ]
