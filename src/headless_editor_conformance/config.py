from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from headless_editor_conformance.client import DEFAULT_TOOL_TIMEOUT, ServerConfig
from headless_editor_conformance.fixtures import default_fixtures_dir

DEFAULT_COMMAND = "node"
DEFAULT_ENTRY = "./build/index.js"
DEFAULT_LANGUAGE = "typescript"
DEFAULT_MODE_VAR = "NODE_ENV"
DEFAULT_MODE_VALUE = "test"


def parse_timeout(value: Optional[str]) -> Optional[float]:
    """Parse a timeout in seconds; ``0``, ``none`` and ``off`` disable it."""

    if value is None:
        return DEFAULT_TOOL_TIMEOUT
    normalized = value.strip().lower()
    if not normalized:
        return DEFAULT_TOOL_TIMEOUT
    if normalized in {"none", "off", "0"}:
        return None
    seconds = float(normalized)
    if seconds < 0:
        raise ValueError("timeout must be non-negative")
    return seconds or None


@dataclass
class HarnessConfig:
    """Settings for one conformance run."""

    command: str = DEFAULT_COMMAND
    entry: str = DEFAULT_ENTRY
    workspace: str = field(default_factory=os.getcwd)
    fixtures_dir: Optional[str] = None
    language_id: str = DEFAULT_LANGUAGE
    tool_timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT
    mode_var: str = DEFAULT_MODE_VAR
    mode_value: str = DEFAULT_MODE_VALUE
    validate: bool = False

    def __post_init__(self) -> None:
        self.workspace = os.path.abspath(self.workspace)
        if not self.fixtures_dir:
            self.fixtures_dir = default_fixtures_dir(self.workspace)
        else:
            self.fixtures_dir = os.path.abspath(self.fixtures_dir)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "HarnessConfig":
        env = os.environ if environ is None else environ
        values: Dict[str, object] = {}

        def _get(name: str) -> Optional[str]:
            value = env.get(name, "").strip()
            return value or None

        if _get("HEADLESS_EDITOR_COMMAND"):
            values["command"] = _get("HEADLESS_EDITOR_COMMAND")
        if _get("HEADLESS_EDITOR_ENTRY"):
            values["entry"] = _get("HEADLESS_EDITOR_ENTRY")
        if _get("HEADLESS_EDITOR_WORKSPACE"):
            values["workspace"] = _get("HEADLESS_EDITOR_WORKSPACE")
        if _get("HEADLESS_EDITOR_FIXTURES"):
            values["fixtures_dir"] = _get("HEADLESS_EDITOR_FIXTURES")
        if _get("HEADLESS_EDITOR_LANGUAGE"):
            values["language_id"] = _get("HEADLESS_EDITOR_LANGUAGE")
        if "HEADLESS_EDITOR_TIMEOUT" in env:
            values["tool_timeout"] = parse_timeout(env.get("HEADLESS_EDITOR_TIMEOUT"))

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def server_config(self) -> ServerConfig:
        """Return launch settings: ``<command> <entry> <workspace> <fixtures>``."""

        args = [self.entry, self.workspace, self.fixtures_dir]
        return ServerConfig(
            command=self.command,
            args=args,
            env={self.mode_var: self.mode_value},
            tool_timeout=self.tool_timeout,
        )


__all__ = [
    "DEFAULT_COMMAND",
    "DEFAULT_ENTRY",
    "DEFAULT_LANGUAGE",
    "HarnessConfig",
    "parse_timeout",
]
