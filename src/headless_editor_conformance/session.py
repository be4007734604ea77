from __future__ import annotations

import enum
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from mcp.server.fastmcp.utilities.logging import get_logger

from headless_editor_conformance.client import EditorClient
from headless_editor_conformance.errors import HarnessError, SessionError
from headless_editor_conformance.results import FailureReport, Outcome, interpret
from headless_editor_conformance.tool_inputs import InsertOperation
from headless_editor_conformance.tool_spec import (
    CLOSE_SESSION,
    EDIT_CODE,
    START_SESSION,
    VALIDATE_CODE,
    build_arguments,
)

logger = get_logger(__name__)


class SessionState(enum.Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class EditorSession:
    """A service-side editing context bound to one file."""

    session_id: str
    file_path: str
    language_id: str
    state: SessionState = SessionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN


class SessionController:
    """Issues session tool calls and tracks the lifecycle of sessions it opened.

    Position bounds are never checked locally; an out-of-range edit comes back
    as a failed outcome from the service.
    """

    def __init__(self, client: EditorClient) -> None:
        self.client = client
        self._sessions: Dict[str, EditorSession] = {}

    def session(self, session_id: str) -> Optional[EditorSession]:
        return self._sessions.get(session_id)

    def state_of(self, session_id: Optional[str]) -> SessionState:
        session = self.session(session_id) if session_id else None
        return session.state if session is not None else SessionState.UNOPENED

    def open_sessions(self) -> List[EditorSession]:
        return [s for s in self._sessions.values() if s.is_open]

    async def _call(self, tool_name: str, **fields: Any) -> Outcome:
        arguments = build_arguments(tool_name, **fields)
        result = await self.client.call_tool(tool_name, arguments)
        return interpret(result)

    async def start_session(self, file_path: str, language_id: str) -> EditorSession:
        """Open a session on ``file_path``.

        Raises:
            ScenarioFailure: The service reported the call as failed.
            SessionError: The call looked successful but carried no ``sessionId``.
        """
        outcome = await self._call(
            START_SESSION, file_path=file_path, language_id=language_id
        )
        if not outcome.ok:
            raise outcome.to_exception(f"start_session failed: {outcome.reason}")

        session_id = outcome.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise SessionError("Session ID not found in start_session response")

        session = EditorSession(
            session_id=session_id,
            file_path=file_path,
            language_id=language_id,
        )
        self._sessions[session_id] = session
        logger.info("Session ID: %s", session_id)
        return session

    async def edit_code(
        self,
        session_id: str,
        operation: Union[InsertOperation, Dict[str, Any]],
    ) -> Outcome:
        # Edits never change lifecycle state, whatever their outcome.
        return await self._call(EDIT_CODE, session_id=session_id, operation=operation)

    async def insert(
        self, session_id: str, content: str, *, line: int, character: int
    ) -> Outcome:
        operation = InsertOperation(
            content=content, position={"line": line, "character": character}
        )
        return await self.edit_code(session_id, operation)

    async def validate_code(self, session_id: str) -> Outcome:
        return await self._call(VALIDATE_CODE, session_id=session_id)

    async def close_session(self, session_id: Optional[str]) -> Optional[Outcome]:
        """Request ``close_session`` for ``session_id``.

        Closing without an id is a no-op returning ``None``. A session already
        closed is still sent to the service so a repeated close is reported as
        the service's failure rather than hidden locally. Channel errors are
        folded into a :class:`FailureReport`; this method does not raise them.
        """
        if not session_id:
            return None

        session = self.session(session_id)
        try:
            outcome = await self._call(CLOSE_SESSION, session_id=session_id)
        except HarnessError as exc:
            outcome = FailureReport(reason=f"close_session raised: {exc}")
        finally:
            if session is not None:
                session.state = SessionState.CLOSED

        if outcome.ok:
            logger.info("Session closed successfully")
        else:
            logger.error("Error closing session %s: %s", session_id, outcome.reason)
        return outcome

    @asynccontextmanager
    async def open_session(
        self, file_path: str, language_id: str
    ) -> AsyncIterator[EditorSession]:
        """Yield an open session and always attempt to close it on exit."""

        session = await self.start_session(file_path, language_id)
        try:
            yield session
        finally:
            await self.close_session(session.session_id)


__all__ = ["EditorSession", "SessionController", "SessionState"]
