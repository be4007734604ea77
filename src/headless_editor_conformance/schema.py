"""Tool Result envelope checked once at the transport boundary."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from headless_editor_conformance.errors import ProtocolError

ContentItem = Mapping[str, Any]


class ContentBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: StrictStr
    text: StrictStr


class ToolResult(BaseModel):
    """Uniform response of every tool call: content blocks plus an optional error flag."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content: List[ContentBlock]
    is_error: Optional[StrictBool] = Field(default=None, alias="isError")

    @property
    def first_text(self) -> Optional[str]:
        if not self.content:
            return None
        return self.content[0].text


def parse_tool_result(raw: Any) -> ToolResult:
    """Validate ``raw`` against the Tool Result shape.

    Args:
        raw: Mapping decoded from the service response.

    Returns:
        ToolResult: The typed envelope.

    Raises:
        ProtocolError: If ``raw`` is not a mapping or does not match the shape.
            Mismatches are never coerced.
    """
    if isinstance(raw, ToolResult):
        return raw
    if not isinstance(raw, Mapping):
        raise ProtocolError(f"Tool result must be an object, got {type(raw).__name__}")
    try:
        return ToolResult.model_validate(dict(raw))
    except ValidationError as exc:
        raise ProtocolError(f"Tool result does not match the expected shape: {exc}") from exc


def tool_result(
    *,
    content: Iterable[ContentItem],
    is_error: Optional[bool] = None,
) -> dict[str, Any]:
    """Return a Tool Result mapping; handy for fakes that stand in for the service."""

    result: dict[str, Any] = {"content": [dict(item) for item in content]}
    if is_error is not None:
        result["isError"] = bool(is_error)
    return result


def text_result(text: str, *, is_error: Optional[bool] = None) -> dict[str, Any]:
    return tool_result(content=[{"type": "text", "text": text}], is_error=is_error)


__all__ = [
    "ContentBlock",
    "ToolResult",
    "parse_tool_result",
    "text_result",
    "tool_result",
]
