"""Benchmark offline: pruning d'un historique d'agent.

But:
- Mesurer le gain tokens/chars avant/après un passage TTL + hard clear + soft trim.

Contraintes:
- Zéro réseau (hors premier chargement de l'encodage Tiktoken)
- Temps simulé: les appels d'outils sont enregistrés à t0, le passage a lieu à t0 + elapsed
- Output stable (option --json)
"""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict, dataclass
from pathlib import Path

# Permet d'exécuter le script sans installer le package
import sys

_REPO_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _REPO_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from context_budget.config import HardClearOptions, SoftTrimOptions
from context_budget.core.tokens import count_tokens_messages
from context_budget.features.session_pruning import (
    TTLTracker,
    apply_hard_clear,
    from_chat_messages,
    register_tool_calls,
    soft_trim_messages,
    to_chat_messages,
)

_T0 = 1_700_000_000_000


@dataclass(frozen=True)
class BenchResult:
    ttl_ms: int
    elapsed_ms: int
    hard_cleared: int
    soft_trimmed: int
    tool_chars_before: int
    tool_chars_after: int
    tokens_before: int
    tokens_after: int


def _sum_tool_chars(messages: list[dict[str, object]]) -> int:
    total = 0
    for msg in messages:
        if msg.get("role") != "tool":
            continue
        content = msg.get("content")
        if isinstance(content, str):
            total += len(content)
    return total


def run_benchmark(*, fixture_path: Path, ttl_ms: int, elapsed_ms: int, json_output: bool) -> int:
    payload = json.loads(fixture_path.read_text(encoding="utf-8"))
    messages_obj = payload.get("messages")
    if not isinstance(messages_obj, list):
        raise ValueError("Fixture invalide: clé 'messages' manquante ou non-list")

    messages: list[dict[str, object]] = [m for m in messages_obj if isinstance(m, dict)]

    tokens_before = count_tokens_messages(messages)
    tool_chars_before = _sum_tool_chars(messages)

    tracker = TTLTracker(ttl_ms=ttl_ms)
    register_tool_calls(tracker, messages, now=_T0)

    now = _T0 + elapsed_ms
    prunable = from_chat_messages(messages, now=_T0)
    cleared = apply_hard_clear(prunable, tracker.get_expired_tool_calls(now=now), HardClearOptions(), now=now)
    tracker.mark_many_pruned(cleared.cleared_tool_call_ids)
    trimmed = soft_trim_messages(cleared.messages, SoftTrimOptions())
    pruned_messages = to_chat_messages(messages, trimmed.messages)

    result = BenchResult(
        ttl_ms=ttl_ms,
        elapsed_ms=elapsed_ms,
        hard_cleared=cleared.cleared_count,
        soft_trimmed=trimmed.trimmed_count,
        tool_chars_before=tool_chars_before,
        tool_chars_after=_sum_tool_chars(pruned_messages),
        tokens_before=tokens_before,
        tokens_after=count_tokens_messages(pruned_messages),
    )

    if json_output:
        print(json.dumps(asdict(result), ensure_ascii=False))
    else:
        ratio_tokens = (result.tokens_after / tokens_before) if tokens_before > 0 else 1.0
        print("Benchmark pruning de session")
        print(f"Fixture: {fixture_path}")
        print(f"ttl_ms: {ttl_ms}, elapsed_ms: {elapsed_ms}")
        print(f"messages effacés: {result.hard_cleared}, rognés: {result.soft_trimmed}")
        print(f"tool chars: {tool_chars_before} -> {result.tool_chars_after}")
        print(f"tokens: {tokens_before} -> {result.tokens_after} (ratio={ratio_tokens:.3f})")

    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--fixture",
        type=Path,
        default=Path("tests/fixtures/tool_heavy_history.json"),
        help="Chemin vers la fixture JSON (défaut: tests/fixtures/tool_heavy_history.json)",
    )
    parser.add_argument("--ttl-ms", type=int, default=300_000, help="TTL des appels d'outils (défaut: 300000)")
    parser.add_argument(
        "--elapsed-ms",
        type=int,
        default=0,
        help="Temps simulé écoulé depuis les appels d'outils (défaut: 0, aucun appel expiré)",
    )
    parser.add_argument("--json", action="store_true", help="Sortie JSON stable (utile CI)")
    args = parser.parse_args()

    return run_benchmark(
        fixture_path=args.fixture,
        ttl_ms=max(0, args.ttl_ms),
        elapsed_ms=max(0, args.elapsed_ms),
        json_output=args.json,
    )


if __name__ == "__main__":
    raise SystemExit(main())
