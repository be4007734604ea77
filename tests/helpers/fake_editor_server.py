"""Stdio MCP server exposing :class:`FakeEditorService` as editor tools.

Launched as ``python fake_editor_server.py <workspace> <fixtures>``; the two
positional paths are accepted for parity with the real service and ignored.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict

sys.path.insert(0, str(Path(__file__).resolve().parent))

from mcp.server.fastmcp import FastMCP  # noqa: E402

from fake_editor import STALL_MARKER_ENV, STALL_SECONDS, FakeEditorService  # noqa: E402

mcp = FastMCP("fake-headless-editor")
service = FakeEditorService()


@mcp.tool()
def start_session(filePath: str, languageId: str) -> str:
    return json.dumps(service.start_session(filePath, languageId))


@mcp.tool()
async def edit_code(sessionId: str, operation: Dict[str, Any]) -> str:
    marker = os.environ.get(STALL_MARKER_ENV)
    if marker:
        Path(marker).write_text(sessionId, encoding="utf-8")
        await asyncio.sleep(STALL_SECONDS)
    return json.dumps(service.edit_code(sessionId, operation))


@mcp.tool()
def validate_code(sessionId: str) -> str:
    return json.dumps(service.validate_code(sessionId))


@mcp.tool()
def close_session(sessionId: str) -> str:
    return json.dumps(service.close_session(sessionId))


if __name__ == "__main__":
    mcp.run()
