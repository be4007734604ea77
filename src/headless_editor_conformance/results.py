"""Success/failure classification of Tool Results and log-friendly summaries."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

from headless_editor_conformance.errors import ScenarioFailure
from headless_editor_conformance.schema import ToolResult

CHARACTER_LIMIT = 25_000

_TRUNCATION_HINT = "... (truncated to {limit:,} characters)"


@dataclass
class ToolOutcome:
    payload: Any
    raw_text: str

    ok = True

    def get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.payload, dict):
            return self.payload.get(key, default)
        return default


@dataclass
class FailureReport:
    """Why a tool call counts as failed, with whatever payload could be recovered."""

    reason: str
    payload: Any = None
    raw_text: Optional[str] = None
    is_error: bool = False

    ok = False

    def get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.payload, dict):
            return self.payload.get(key, default)
        return default

    def to_exception(self, message: str | None = None) -> ScenarioFailure:
        return ScenarioFailure(self, message)


Outcome = Union[ToolOutcome, FailureReport]


def is_successful(result: ToolResult, payload: Any) -> bool:
    """Return ``True`` only when all three success signals agree.

    A call succeeds when ``isError`` is falsy, the payload carries no ``error``
    field, and the payload's ``success`` field is not explicitly ``False``.
    """

    if result.is_error:
        return False
    if isinstance(payload, dict):
        if payload.get("error"):
            return False
        if payload.get("success") is False:
            return False
    return True


def _failure_reason(result: ToolResult, payload: Any) -> str:
    if result.is_error:
        return "Tool result flagged isError"
    error = payload.get("error") if isinstance(payload, dict) else None
    if error:
        if isinstance(error, dict):
            error = error.get("message") or json.dumps(error, ensure_ascii=False)
        return f"Tool reported error: {error}"
    return "Tool reported success=false"


def interpret(result: ToolResult) -> Outcome:
    """Classify ``result`` without raising.

    The first content block's text is decoded as JSON; undecodable text or an
    empty content list yields a :class:`FailureReport` that keeps the raw text.
    """

    raw_text = result.first_text
    if raw_text is None:
        return FailureReport(
            reason="Tool result has no content blocks",
            is_error=bool(result.is_error),
        )

    try:
        payload = json.loads(raw_text)
    except ValueError as exc:
        return FailureReport(
            reason=f"Tool result text is not valid JSON: {exc}",
            raw_text=raw_text,
            is_error=bool(result.is_error),
        )

    if not is_successful(result, payload):
        return FailureReport(
            reason=_failure_reason(result, payload),
            payload=payload,
            raw_text=raw_text,
            is_error=bool(result.is_error),
        )
    return ToolOutcome(payload=payload, raw_text=raw_text)


def truncate_text(text: str, *, limit: int = CHARACTER_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "\n" + _TRUNCATION_HINT.format(limit=limit)


def format_payload(payload: Any, *, limit: int = CHARACTER_LIMIT) -> str:
    try:
        text = json.dumps(payload, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(payload)
    return truncate_text(text, limit=limit)


def build_summary(summary: str, details: Sequence[str] | None = None) -> str:
    """Return a Markdown summary block."""

    headline = summary.strip() or "(no summary provided)"
    lines: List[str] = [f"**Summary:** {headline}"]

    if details:
        for detail in details:
            detail_text = (detail or "").strip()
            if detail_text:
                lines.append(f"- {detail_text}")

    return "\n".join(lines)


def describe_outcome(outcome: Outcome, *, limit: int = CHARACTER_LIMIT) -> str:
    """Render an outcome for logs: headline, reason, then the payload or raw text."""

    if outcome.ok:
        return build_summary("Test success") + "\n" + format_payload(outcome.payload, limit=limit)

    details = [f"Reason: {outcome.reason}"]
    if outcome.is_error:
        details.append("isError: true")
    text = build_summary("Test failed", details)
    if outcome.payload is not None:
        text += "\nError Details:\n" + format_payload(outcome.payload, limit=limit)
    elif outcome.raw_text:
        text += "\nRaw Text:\n" + truncate_text(outcome.raw_text, limit=limit)
    return text


__all__ = [
    "CHARACTER_LIMIT",
    "FailureReport",
    "Outcome",
    "ToolOutcome",
    "build_summary",
    "describe_outcome",
    "format_payload",
    "interpret",
    "is_successful",
    "truncate_text",
]
