from __future__ import annotations

import os
from typing import Any, Literal, Union
from urllib.parse import unquote, urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class ToolInputBase(BaseModel):
    """Shared configuration for editor tool arguments.

    Field names are snake_case in Python and serialize to the camelCase keys the
    editor service expects.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        extra="forbid",
    )

    def to_arguments(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(ToolInputBase):
    # Bounds belong to the service; out-of-range values come back as a failed result.
    line: int = Field(
        ...,
        description="Zero-based line within the session buffer.",
    )
    character: int = Field(
        ...,
        validation_alias=AliasChoices("character", "column"),
        description="Zero-based character offset; the service clamps past-end values.",
    )


class InsertOperation(ToolInputBase):
    type: Literal["insert"] = "insert"
    # Inserted verbatim; never strip whitespace here.
    content: str = Field(..., description="Text inserted at `position`.")
    position: Position

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_position(cls, data: Any) -> Any:
        """Accept ``{"line": .., "character": ..}`` next to ``content``.

        Rewrites the flat keys into a nested ``position`` so callers can build an
        insert from keyword arguments without constructing :class:`Position`.
        """
        if not isinstance(data, dict) or "position" in data:
            return data
        if "line" in data:
            data = dict(data)
            data["position"] = {
                "line": data.pop("line"),
                "character": data.pop("character", 0),
            }
        return data


EditOperation = Union[InsertOperation]


class SessionInput(ToolInputBase):
    session_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("sessionId", "session_id"),
        serialization_alias="sessionId",
        description="Identifier returned by `start_session`.",
    )


class StartSessionInput(ToolInputBase):
    file_path: str = Field(
        ...,
        validation_alias=AliasChoices("filePath", "file_path", "uri"),
        serialization_alias="filePath",
        description="Absolute path of the file to open.",
    )
    language_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("languageId", "language_id"),
        serialization_alias="languageId",
        description="Editor mode hint such as `typescript`.",
    )

    @field_validator("file_path", mode="before")
    @classmethod
    def _coerce_file_uri(cls, value: Any) -> Any:
        """Allow `file://` URIs by converting to a local path string."""
        if isinstance(value, str) and value.startswith("file://"):
            return unquote(urlparse(value).path or "")
        return value

    @field_validator("file_path")
    @classmethod
    def _validate_file_path(cls, value: str) -> str:
        if not value:
            raise ValueError("file_path cannot be empty.")
        if not os.path.isabs(value):
            raise ValueError("file_path must be absolute.")
        return value


class EditCodeInput(SessionInput):
    operation: EditOperation


class CloseSessionInput(SessionInput):
    """Input for `close_session`."""


class ValidateCodeInput(SessionInput):
    """Input for `validate_code`."""


__all__ = [
    "CloseSessionInput",
    "EditCodeInput",
    "EditOperation",
    "InsertOperation",
    "Position",
    "SessionInput",
    "StartSessionInput",
    "ToolInputBase",
    "ValidateCodeInput",
]
