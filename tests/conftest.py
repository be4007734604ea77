from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
HELPERS = Path(__file__).resolve().parent / "helpers"
FAKE_SERVER = HELPERS / "fake_editor_server.py"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from helpers.fake_editor import FakeEditorService  # noqa: E402

from headless_editor_conformance.client import EditorClient, ServerConfig  # noqa: E402
from headless_editor_conformance.fixtures import setup_fixtures  # noqa: E402
from headless_editor_conformance.schema import text_result  # noqa: E402
from headless_editor_conformance.session import SessionController  # noqa: E402

Responder = Callable[[str, Dict[str, Any]], Any]


class FakeClientSession:
    """Duck-typed ``mcp.ClientSession`` answering tool calls from a fake service.

    ``responder`` overrides the service for every call; it may return a raw
    result mapping or raise to simulate channel failures.
    """

    def __init__(
        self,
        service: Optional[FakeEditorService] = None,
        *,
        responder: Optional[Responder] = None,
        delay: float = 0.0,
    ) -> None:
        self.service = service if service is not None else FakeEditorService()
        self.responder = responder
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._active = 0
        self.max_active = 0

    def tool_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None):
        arguments = dict(arguments or {})
        self.calls.append((name, arguments))
        self._active += 1
        try:
            self.max_active = max(self.max_active, self._active)
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.responder is not None:
                return self.responder(name, arguments)
            handler = getattr(self.service, name, None)
            if handler is None:
                return text_result(json.dumps({"error": f"Unknown tool: {name}"}), is_error=True)
            return text_result(json.dumps(handler(**arguments)))
        finally:
            self._active -= 1


def make_client(session: Any, *, tool_timeout: Optional[float] = 5.0) -> EditorClient:
    return EditorClient(
        ServerConfig(command="fake-editor", tool_timeout=tool_timeout),
        session=session,
    )


@pytest.fixture
def fake_session() -> FakeClientSession:
    return FakeClientSession()


@pytest.fixture
def editor_client(fake_session: FakeClientSession) -> EditorClient:
    return make_client(fake_session)


@pytest.fixture
def controller(editor_client: EditorClient) -> SessionController:
    return SessionController(editor_client)


@pytest.fixture
def fixture_paths(tmp_path):
    return setup_fixtures(str(tmp_path))


__all__ = ["FAKE_SERVER", "SRC", "FakeClientSession", "make_client"]
