"""Détection heuristique du type de sortie d'un outil.

Ordre des règles:
1) patterns d'erreur sur le contenu
2) mots-clés du nom d'outil
3) forme du contenu (déclarations de code, lignes de log)
4) "unknown"
"""

from __future__ import annotations

import re
from typing import Iterable, Pattern

from ...core.models import OutputType


_TOOL_NAME_RULES: tuple[tuple[tuple[str, ...], OutputType], ...] = (
    (("read", "file"), "file_content"),
    (("search", "grep", "find"), "search_result"),
    (("bash", "exec", "run"), "command_output"),
    (("list", "info", "status"), "metadata"),
)

_CODE_RE = re.compile(r"^(function|class|const|let|var|import|export|def |async )", re.MULTILINE)
_LOG_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2}|^\d{4}/\d{2}/\d{2}|^(INFO|DEBUG|WARN|ERROR)", re.MULTILINE)


def detect_output_type(
    tool_name: str | None,
    content: str | None,
    error_patterns: Iterable[Pattern[str]] = (),
) -> OutputType:
    """Déduit le type de sortie à partir du nom d'outil et du contenu."""

    tool_lower = (tool_name or "").lower()
    content = content or ""
    content_lower = content.lower()

    for pattern in error_patterns:
        if pattern.search(content_lower):
            return "error"

    for keywords, output_type in _TOOL_NAME_RULES:
        if any(keyword in tool_lower for keyword in keywords):
            return output_type

    if _CODE_RE.search(content):
        return "code"
    if _LOG_RE.search(content):
        return "log"

    return "unknown"
