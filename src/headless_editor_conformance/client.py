"""Single-channel MCP client for the headless editor service.

The service runs as a child process and speaks MCP over its stdin/stdout. Its
stderr carries diagnostics only and is left to the SDK.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import anyio
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.server.fastmcp.utilities.logging import get_logger
from mcp.shared.exceptions import McpError
from mcp.types import CONNECTION_CLOSED
from pydantic import ValidationError

from headless_editor_conformance.errors import ProtocolError, TransportError
from headless_editor_conformance.schema import ToolResult, parse_tool_result

logger = get_logger(__name__)

TOOLS_CALL = "tools/call"
DEFAULT_TOOL_TIMEOUT = 60.0

_CHANNEL_ERRORS = (
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    OSError,
)


@dataclass
class ServerConfig:
    """How to launch the editor service."""

    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    # ``None`` waits indefinitely for each tool call.
    tool_timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT

    def server_parameters(self) -> StdioServerParameters:
        merged_env = {**os.environ, **(self.env or {})}
        return StdioServerParameters(
            command=self.command,
            args=list(self.args),
            env=merged_env,
            cwd=self.cwd,
        )


def build_envelope(name: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "method": TOOLS_CALL,
        "params": {"name": name, "arguments": dict(arguments)},
    }


def _result_to_mapping(result: Any) -> Any:
    if hasattr(result, "model_dump"):
        return result.model_dump(by_alias=True, exclude_none=True, mode="json")
    return result


class EditorClient:
    """Request/response channel to one editor service process.

    Only one request is in flight at a time; concurrent callers queue on an
    internal lock. A lost connection is reported, never re-established.
    """

    def __init__(self, config: ServerConfig, *, session: Any = None) -> None:
        self.config = config
        self._session = session
        self._exit_stack: AsyncExitStack | None = None
        self._request_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Launch the service and complete the MCP initialize handshake.

        Raises:
            TransportError: If the process cannot be started or the handshake fails.
        """
        if self._session is not None:
            return

        timeout = self.config.tool_timeout
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(
                stdio_client(self.config.server_parameters())
            )
            session = await stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )
            if timeout is None:
                await session.initialize()
            else:
                await asyncio.wait_for(session.initialize(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            await self._abandon(stack)
            raise TransportError(
                f"Editor service `{self.config.command}` did not complete "
                f"initialize within {timeout}s"
            ) from exc
        except Exception as exc:
            await self._abandon(stack)
            raise TransportError(
                f"Failed to connect to editor service `{self.config.command}`: {exc}"
            ) from exc

        self._exit_stack = stack
        self._session = session
        logger.info(
            "Connected to editor service: %s %s",
            self.config.command,
            " ".join(self.config.args),
        )

    @staticmethod
    async def _abandon(stack: AsyncExitStack) -> None:
        try:
            await stack.aclose()
        except Exception as exc:  # pragma: no cover - secondary failure
            logger.warning("Error tearing down failed connection: %s", exc)

    async def request(self, envelope: Mapping[str, Any]) -> ToolResult:
        """Send one ``tools/call`` envelope and return the validated Tool Result.

        Raises:
            ProtocolError: Malformed envelope, JSON-RPC error reply, or a reply
                that does not match the Tool Result shape.
            TransportError: Not connected, channel lost, or the call timed out.
        """
        if envelope.get("method") != TOOLS_CALL:
            raise ProtocolError(f"Unsupported method: {envelope.get('method')!r}")
        params = envelope.get("params")
        if not isinstance(params, Mapping) or not isinstance(params.get("name"), str):
            raise ProtocolError("Envelope params must include a tool name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, Mapping):
            raise ProtocolError("Envelope arguments must be an object")

        name = params["name"]
        if self._session is None:
            raise TransportError(f"Cannot call `{name}`: client is not connected")

        async with self._request_lock:
            raw = await self._send(name, dict(arguments))
        return parse_tool_result(_result_to_mapping(raw))

    async def _send(self, name: str, arguments: Dict[str, Any]) -> Any:
        timeout = self.config.tool_timeout
        call = self._session.call_tool(name, arguments=arguments)
        try:
            if timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Tool call `{name}` timed out after {timeout}s"
            ) from exc
        except McpError as exc:
            error = getattr(exc, "error", None)
            if getattr(error, "code", None) == CONNECTION_CLOSED:
                raise TransportError(f"Connection lost during `{name}`: {exc}") from exc
            raise ProtocolError(f"Service rejected `{name}`: {exc}") from exc
        except ValidationError as exc:
            raise ProtocolError(f"Malformed response to `{name}`: {exc}") from exc
        except _CHANNEL_ERRORS as exc:
            raise TransportError(f"Channel failure during `{name}`: {exc!r}") from exc

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> ToolResult:
        return await self.request(build_envelope(name, arguments))

    async def close(self) -> None:
        """Tear down the session, then the transport. Safe to call repeatedly."""
        stack = self._exit_stack
        self._exit_stack = None
        self._session = None
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as exc:
            raise TransportError(f"Error closing editor service channel: {exc}") from exc
        logger.info("Client closed")

    async def __aenter__(self) -> "EditorClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "DEFAULT_TOOL_TIMEOUT",
    "EditorClient",
    "ServerConfig",
    "TOOLS_CALL",
    "build_envelope",
]
