"""Configuration and path discovery."""

from grove.config.paths import (
    find_grove_root,
    get_manifest_path,
    get_rc_path,
    get_repositories_dir,
    get_state_dir,
    get_workspaces_dir,
)
from grove.config.settings import (
    ExecConfig,
    GroveConfig,
    InvalidSettingError,
    LinksConfig,
    StateConfig,
)

__all__ = [
    'find_grove_root',
    'get_manifest_path',
    'get_rc_path',
    'get_repositories_dir',
    'get_state_dir',
    'get_workspaces_dir',
    'ExecConfig',
    'GroveConfig',
    'InvalidSettingError',
    'LinksConfig',
    'StateConfig',
]
