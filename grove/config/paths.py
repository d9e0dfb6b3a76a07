"""Path resolution utilities for Grove.

Provides centralized root discovery with an environment variable override
(useful for testing).
"""

import os
from pathlib import Path
from typing import Optional

ROOT_ENV_VAR = "GROVE_ROOT"
RC_FILENAME = ".groverc"
DEFAULT_ROOT_DIRNAME = "grove"

REPOSITORIES_DIRNAME = "repositories"
WORKSPACES_DIRNAME = "workspaces"
STATE_DIRNAME = ".grove"

MANIFEST_FILENAME = "grove.toml"


def find_grove_root(start_path: Optional[Path] = None) -> Path:
    """Locate the grove root directory.

    Resolution order:
        1. ``GROVE_ROOT`` environment variable
        2. nearest ancestor of ``start_path`` (default: cwd) holding ``.groverc``
        3. ``~/grove``

    The returned directory is not required to exist yet.
    """
    override = os.environ.get(ROOT_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()

    current = Path(start_path or os.getcwd()).resolve()
    while True:
        if (current / RC_FILENAME).is_file():
            return current
        if current == current.parent:
            break
        current = current.parent

    return Path.home() / DEFAULT_ROOT_DIRNAME


def get_rc_path(root: Path) -> Path:
    return root / RC_FILENAME


def get_repositories_dir(root: Path) -> Path:
    """Directory holding every repository tree."""
    return root / REPOSITORIES_DIRNAME


def get_workspaces_dir(root: Path) -> Path:
    """Directory holding every workspace tree."""
    return root / WORKSPACES_DIRNAME


def get_state_dir(root: Path) -> Path:
    """Directory holding registry.json, links.json and the state lock."""
    return root / STATE_DIRNAME


def get_manifest_path(tree_root: Path) -> Path:
    return Path(tree_root) / MANIFEST_FILENAME
