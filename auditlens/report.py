"""Downloadable report documents and presentation helpers."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from typing import Any, Dict

from .models import VulnerabilityAnalysisResult
from .prompting.constants import REPORT_DISCLAIMER

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
_MAX_IDENTIFIER_LENGTH = 50


def build_report_document(
    result: VulnerabilityAnalysisResult, *, now: datetime | None = None
) -> Dict[str, Any]:
    """Return the JSON document offered for download after an audit."""
    timestamp = (now or datetime.now(UTC)).isoformat().replace("+00:00", "Z")
    return {
        "contractIdentifier": result.contract_identifier,
        "analysisTimestamp": timestamp,
        "aiSelectedTools": list(result.selected_tools),
        "reportedVulnerabilities": [
            item.model_dump(by_alias=True) for item in result.vulnerabilities
        ],
        "summary": REPORT_DISCLAIMER,
    }


def report_filename(identifier: str, *, today: date | None = None) -> str:
    safe = _UNSAFE_FILENAME_CHARS.sub("_", identifier)[:_MAX_IDENTIFIER_LENGTH]
    day = (today or datetime.now(UTC).date()).isoformat()
    return f"auditlens_report_{safe}_{day}.json"


def severity_badge(severity: str) -> str:
    if severity in {"Critical", "High"}:
        return "destructive"
    if severity == "Medium":
        return "secondary"
    return "outline"


def is_url_identifier(identifier: str | None) -> bool:
    return bool(identifier) and identifier.startswith(("http://", "https://"))  # type: ignore[union-attr]


__all__ = [
    "build_report_document",
    "is_url_identifier",
    "report_filename",
    "severity_badge",
]
