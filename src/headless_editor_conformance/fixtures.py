from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass
from typing import Any, Dict, Optional

from mcp.server.fastmcp.utilities.logging import get_logger

from headless_editor_conformance.errors import FixtureError

logger = get_logger(__name__)

FIXTURES_DIRNAME = "test-fixtures"
COMPONENT_FILENAME = "test.ts"
CONFIG_FILENAME = "tsconfig.json"

# Zero-based line 5 is the `variant?:` declaration; edit scenarios target it.
COMPONENT_SOURCE = """import * as React from 'react';

interface ButtonProps {
  label: string;
  onClick?: () => void;
  variant?: 'primary' | 'secondary';
}

export const Button: React.FC<ButtonProps> = ({
  label,
  onClick,
  variant = 'primary'
}) => {
  const buttonClass = `button ${variant}`;

  return (
    <button
      className={buttonClass}
      onClick={onClick}
      type="button"
    >
      {label}
    </button>
  );
};""".strip()

TSCONFIG: Dict[str, Any] = {
    "compilerOptions": {
        "target": "es2017",
        "module": "esnext",
        "moduleResolution": "node",
        "jsx": "react",
        "strict": True,
        "esModuleInterop": True,
        "skipLibCheck": True,
        "forceConsistentCasingInFileNames": True,
        "lib": ["dom", "dom.iterable", "esnext"],
        "allowJs": True,
        "allowSyntheticDefaultImports": True,
        "noEmit": True,
        "isolatedModules": True,
        "baseUrl": ".",
        "paths": {"*": ["*", "node_modules/*"]},
    },
    "include": ["./**/*.ts", "./**/*.tsx"],
    "exclude": ["node_modules"],
}


@dataclass(frozen=True)
class FixturePaths:
    """Locations produced by :func:`setup_fixtures`."""

    fixtures_dir: str
    component_file: str
    config_file: str
    current_dir: str


def default_fixtures_dir(current_dir: str) -> str:
    return os.path.join(os.path.abspath(current_dir), FIXTURES_DIRNAME)


def setup_fixtures(current_dir: str, fixtures_dir: Optional[str] = None) -> FixturePaths:
    """Create the fixture directory and seed it with the component and tsconfig.

    Args:
        current_dir: Workspace root handed to the editor service.
        fixtures_dir: Target directory; defaults to ``<current_dir>/test-fixtures``.

    Returns:
        FixturePaths: Absolute paths of the directory and both seeded files.

    Raises:
        FixtureError: If the directory or either file cannot be written.
    """
    current_dir = os.path.abspath(current_dir)
    fixtures_dir = os.path.abspath(fixtures_dir or default_fixtures_dir(current_dir))

    try:
        if os.path.isdir(fixtures_dir) and os.listdir(fixtures_dir):
            # Stale entries stay; callers remove the directory first when reusing it.
            logger.warning("Fixture directory %s is not empty", fixtures_dir)
        os.makedirs(fixtures_dir, exist_ok=True)

        config_file = os.path.join(fixtures_dir, CONFIG_FILENAME)
        with open(config_file, "w", encoding="utf-8") as f:
            f.write(json.dumps(TSCONFIG, indent=2))

        component_file = os.path.join(fixtures_dir, COMPONENT_FILENAME)
        with open(component_file, "w", encoding="utf-8") as f:
            f.write(COMPONENT_SOURCE)
    except OSError as exc:
        raise FixtureError(f"Unable to provision fixtures in {fixtures_dir}: {exc}") from exc

    logger.info("Provisioned fixtures in %s", fixtures_dir)
    return FixturePaths(
        fixtures_dir=fixtures_dir,
        component_file=component_file,
        config_file=config_file,
        current_dir=current_dir,
    )


def fixtures_exist(fixtures_dir: Optional[str]) -> bool:
    return bool(fixtures_dir) and os.path.isdir(fixtures_dir)


def remove_fixtures(fixtures_dir: Optional[str]) -> bool:
    """Remove ``fixtures_dir`` recursively.

    Returns ``False`` when there was nothing to remove so repeated calls are safe.
    Raises :class:`FixtureError` when the directory exists but cannot be deleted.
    """
    if not fixtures_exist(fixtures_dir):
        return False
    try:
        shutil.rmtree(fixtures_dir)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FixtureError(f"Unable to remove fixtures in {fixtures_dir}: {exc}") from exc
    logger.info("Removed fixtures in %s", fixtures_dir)
    return True


__all__ = [
    "COMPONENT_FILENAME",
    "COMPONENT_SOURCE",
    "CONFIG_FILENAME",
    "FIXTURES_DIRNAME",
    "FixturePaths",
    "TSCONFIG",
    "default_fixtures_dir",
    "fixtures_exist",
    "remove_fixtures",
    "setup_fixtures",
]
