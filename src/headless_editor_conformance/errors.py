"""Error taxonomy shared by the conformance driver."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from headless_editor_conformance.results import FailureReport


class HarnessError(Exception):
    """Base class for every error raised by the driver."""


class FixtureError(HarnessError, OSError):
    """Raised when the fixture directory cannot be created, written or removed."""


class TransportError(HarnessError):
    """Raised when the stdio channel to the editor service is unusable."""


class ProtocolError(HarnessError):
    """Raised when a response does not match the Tool Result envelope."""


class SessionError(HarnessError):
    """Raised when a well-formed response lacks data the session depends on."""


class ScenarioFailure(HarnessError):
    """A tool call that completed but failed the success convention."""

    def __init__(self, report: "FailureReport", message: str | None = None) -> None:
        if message is None:
            message = report.reason or "Tool call failed"
        super().__init__(message)
        self.report = report


class CleanupError(HarnessError):
    """Raised after teardown when at least one cleanup step could not complete."""

    def __init__(self, failures: List[str], message: Optional[str] = None) -> None:
        if message is None:
            message = "Cleanup failed: " + "; ".join(failures)
        super().__init__(message)
        self.failures = list(failures)


__all__ = [
    "CleanupError",
    "FixtureError",
    "HarnessError",
    "ProtocolError",
    "ScenarioFailure",
    "SessionError",
    "TransportError",
]
