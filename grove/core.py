"""The explicit shared state of one grove root."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from grove.config.paths import (
    find_grove_root,
    get_rc_path,
    get_repositories_dir,
    get_state_dir,
    get_workspaces_dir,
)
from grove.config.settings import GroveConfig
from grove.dispatch import CommandDispatcher
from grove.links.graph import LinkGraph, LinkKind
from grove.links.materializer import LinkMaterializer
from grove.links.strategies import select_link_kind
from grove.registry import Registry
from grove.state.storage import StateStore

logger = logging.getLogger(__name__)


class Grove:
    """Root directory, configuration and the loaded registry/link state."""

    def __init__(self, root: Path, config: GroveConfig):
        self.root = Path(root)
        self.config = config
        self.store = StateStore(get_state_dir(self.root), lock_timeout=config.state.lock_timeout)
        self.registry = Registry(self.store)
        self.graph = LinkGraph(self.registry)
        self.materializer = LinkMaterializer(
            self.registry, self.graph, manage_gitignore=config.links.manage_gitignore
        )
        self.dispatcher = CommandDispatcher(
            self.registry, self.graph, env_prefix=config.exec.env_prefix
        )
        self._link_kind: Optional[LinkKind] = None

    @classmethod
    def open(cls, root: Optional[Union[str, Path]] = None) -> "Grove":
        """Discover (or use) the root, create its layout, and load state."""
        root = Path(root).expanduser().resolve() if root is not None else find_grove_root()
        for directory in (root, get_repositories_dir(root), get_workspaces_dir(root)):
            directory.mkdir(parents=True, exist_ok=True)

        config = GroveConfig.load(get_rc_path(root))
        level = logging.getLevelName(config.log_level)
        if isinstance(level, int):
            logging.getLogger("grove").setLevel(level)
        else:
            logger.warning("Unknown log level %r in %s", config.log_level, get_rc_path(root))

        logger.debug("Opened grove at %s", root)
        return cls(root, config)

    @property
    def repositories_dir(self) -> Path:
        return get_repositories_dir(self.root)

    @property
    def workspaces_dir(self) -> Path:
        return get_workspaces_dir(self.root)

    @property
    def link_kind(self) -> LinkKind:
        """Link variant used for new links, chosen once per instance."""
        if self._link_kind is None:
            self._link_kind = select_link_kind(self.config.links.kind)
        return self._link_kind

    def __repr__(self) -> str:
        return f"Grove({str(self.root)!r})"
