"""
Global configuration for Grove - handles settings for link materialization,
state locking and command dispatch. Stored as TOML in ``<root>/.groverc``.
"""
import logging
import toml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

LINK_KIND_CHOICES = ("auto", "symlink", "junction", "copy")


class InvalidSettingError(Exception):
    """Exception raised when a setting fails validation."""
    pass


@dataclass
class LinksConfig:
    """How links are realized on disk."""
    kind: str = "auto"
    manage_gitignore: bool = True

    def __post_init__(self):
        if self.kind not in LINK_KIND_CHOICES:
            raise InvalidSettingError(
                f"links.kind must be one of {', '.join(LINK_KIND_CHOICES)}, got {self.kind!r}"
            )


@dataclass
class StateConfig:
    """Registry/link state persistence."""
    lock_timeout: float = 10.0  # seconds

    def __post_init__(self):
        if self.lock_timeout < 0:
            raise InvalidSettingError("state.lock_timeout must not be negative")


@dataclass
class ExecConfig:
    """Command dispatch settings."""
    env_prefix: str = "GROVE_"


@dataclass
class GroveConfig:
    """Grove configuration."""
    log_level: str = "WARNING"
    links: LinksConfig = field(default_factory=LinksConfig)
    state: StateConfig = field(default_factory=StateConfig)
    exec: ExecConfig = field(default_factory=ExecConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'GroveConfig':
        """Load configuration from file.

        A missing file yields defaults; an unreadable or invalid one is
        reported and also yields defaults.
        """
        if config_path is None or not Path(config_path).exists():
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = toml.load(f)
            return cls.from_dict(data)
        except (OSError, toml.TomlDecodeError, InvalidSettingError, TypeError, ValueError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)
            return cls()

    @classmethod
    def from_dict(cls, data: dict) -> 'GroveConfig':
        """Create GroveConfig from dictionary data."""
        links_data = data.get('links', {})
        links_config = LinksConfig(
            kind=links_data.get('kind', "auto"),
            manage_gitignore=bool(links_data.get('manage_gitignore', True)),
        )

        state_data = data.get('state', {})
        state_config = StateConfig(
            lock_timeout=float(state_data.get('lock_timeout', 10.0)),
        )

        exec_data = data.get('exec', {})
        exec_config = ExecConfig(
            env_prefix=exec_data.get('env_prefix', "GROVE_"),
        )

        return cls(
            log_level=str(data.get('grove', {}).get('log_level', "WARNING")).upper(),
            links=links_config,
            state=state_config,
            exec=exec_config,
        )

    def to_dict(self) -> dict:
        return {
            'grove': {
                'log_level': self.log_level,
            },
            'links': {
                'kind': self.links.kind,
                'manage_gitignore': self.links.manage_gitignore,
            },
            'state': {
                'lock_timeout': self.state.lock_timeout,
            },
            'exec': {
                'env_prefix': self.exec.env_prefix,
            },
        }

    def save(self, config_path: Path) -> None:
        """Save configuration to file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            toml.dump(self.to_dict(), f)
