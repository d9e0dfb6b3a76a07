"""Platform link capabilities.

A link can be realized as a symbolic link, a Windows directory junction, or
(as a last resort) a marked copy of the target tree. Each variant knows how
to create and remove its own entries; :func:`inspect_entry` tells them apart
when looking at an existing path.
"""
from __future__ import annotations

import functools
import json
import logging
import os
import shutil
import stat
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from grove.errors import FilesystemError
from grove.links.graph import LinkEdge, LinkKind

logger = logging.getLogger(__name__)

COPY_MARKER = ".grove-link.json"


@dataclass
class EntryInfo:
    """What currently sits at a path.

    ``kind`` is None for ordinary files/directories that Grove did not make.
    """
    path: Path
    kind: Optional[LinkKind]
    resolved: Optional[Path] = None
    marker: Optional[Dict[str, Any]] = None

    @property
    def is_link(self) -> bool:
        return self.kind in (LinkKind.SYMLINK, LinkKind.JUNCTION)


def is_junction(path: Path) -> bool:
    if os.name != "nt":
        return False
    try:
        st = os.lstat(path)
    except OSError:
        return False
    attributes = getattr(st, "st_file_attributes", 0)
    return bool(attributes & stat.FILE_ATTRIBUTE_REPARSE_POINT) and not stat.S_ISLNK(st.st_mode)


def read_marker(path: Path) -> Optional[Dict[str, Any]]:
    marker_file = Path(path) / COPY_MARKER
    try:
        with open(marker_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def inspect_entry(path: Path) -> Optional[EntryInfo]:
    """Classify the entry at ``path``; None if nothing is there."""
    path = Path(path)
    if not os.path.lexists(path):
        return None
    if os.path.islink(path):
        return EntryInfo(path, LinkKind.SYMLINK, resolved=Path(os.path.realpath(path)))
    if is_junction(path):
        return EntryInfo(path, LinkKind.JUNCTION, resolved=Path(os.path.realpath(path)))
    if path.is_dir():
        marker = read_marker(path)
        if marker is not None:
            return EntryInfo(path, LinkKind.COPY, marker=marker)
    return EntryInfo(path, None)


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(os.path.realpath(a)) == os.path.normcase(os.path.realpath(b))


class LinkStrategy:
    """Create/remove one kind of link entry."""
    kind: LinkKind

    def create(self, target_root: Path, link_path: Path, edge: LinkEdge) -> None:
        raise NotImplementedError

    def remove(self, link_path: Path) -> None:
        raise NotImplementedError

    def matches(self, info: EntryInfo, target_root: Path, edge: LinkEdge) -> bool:
        """True if ``info`` is a correct realization of ``edge``."""
        return info.kind is self.kind and info.resolved is not None and _same_path(info.resolved, target_root)


class SymlinkStrategy(LinkStrategy):
    kind = LinkKind.SYMLINK

    def create(self, target_root: Path, link_path: Path, edge: LinkEdge) -> None:
        try:
            os.symlink(target_root, link_path, target_is_directory=True)
        except OSError as e:
            raise FilesystemError(
                f"Could not create symlink {link_path} -> {target_root} for {edge}: {e}",
                path=link_path,
            ) from e

    def remove(self, link_path: Path) -> None:
        _remove_link_entry(link_path)


class JunctionStrategy(LinkStrategy):
    kind = LinkKind.JUNCTION

    def create(self, target_root: Path, link_path: Path, edge: LinkEdge) -> None:
        if os.name != "nt":
            raise FilesystemError(
                f"Cannot materialize {edge} as a junction: junctions are only available on Windows",
                path=link_path,
            )
        try:
            result = subprocess.run(
                ["cmd", "/c", "mklink", "/J", str(link_path), str(target_root)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise FilesystemError(f"Could not run mklink for {edge}: {e}", path=link_path) from e
        if result.returncode != 0:
            raise FilesystemError(
                f"mklink /J failed for {edge}: {(result.stderr or result.stdout).strip()}",
                path=link_path,
            )

    def remove(self, link_path: Path) -> None:
        _remove_link_entry(link_path)


class CopyStrategy(LinkStrategy):
    kind = LinkKind.COPY

    def create(self, target_root: Path, link_path: Path, edge: LinkEdge) -> None:
        try:
            shutil.copytree(target_root, link_path, symlinks=True,
                            ignore=shutil.ignore_patterns(COPY_MARKER))
            marker = {
                'source': str(edge.source),
                'alias': edge.alias,
                'target': str(edge.target),
                'target_root': str(target_root),
                'copied_at': datetime.now().isoformat(),
            }
            with open(link_path / COPY_MARKER, "w", encoding="utf-8") as f:
                json.dump(marker, f, indent=2)
        except (OSError, shutil.Error) as e:
            shutil.rmtree(link_path, ignore_errors=True)
            raise FilesystemError(
                f"Could not copy {target_root} to {link_path} for {edge}: {e}", path=link_path
            ) from e

    def remove(self, link_path: Path) -> None:
        try:
            shutil.rmtree(link_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise FilesystemError(f"Could not remove copy {link_path}: {e}", path=link_path) from e

    def matches(self, info: EntryInfo, target_root: Path, edge: LinkEdge) -> bool:
        marker = info.marker or {}
        return (
            info.kind is LinkKind.COPY
            and marker.get('source') == str(edge.source)
            and marker.get('alias') == edge.alias
            and marker.get('target') == str(edge.target)
        )


def _remove_link_entry(link_path: Path) -> None:
    """Remove a symlink or junction without touching what it points at."""
    try:
        os.unlink(link_path)
    except FileNotFoundError:
        return
    except (IsADirectoryError, PermissionError):
        # Windows directory symlinks and junctions are removed with rmdir.
        try:
            os.rmdir(link_path)
        except OSError as e:
            raise FilesystemError(f"Could not remove link {link_path}: {e}", path=link_path) from e
    except OSError as e:
        raise FilesystemError(f"Could not remove link {link_path}: {e}", path=link_path) from e


STRATEGIES = {
    LinkKind.SYMLINK: SymlinkStrategy(),
    LinkKind.JUNCTION: JunctionStrategy(),
    LinkKind.COPY: CopyStrategy(),
}


def strategy_for(kind: LinkKind) -> LinkStrategy:
    return STRATEGIES[LinkKind(kind)]


@functools.lru_cache(maxsize=None)
def can_symlink() -> bool:
    """Check once whether this process may create directory symlinks."""
    with tempfile.TemporaryDirectory(prefix="grove-symlink-check-") as tmp:
        target = Path(tmp) / "target"
        target.mkdir()
        try:
            os.symlink(target, Path(tmp) / "link", target_is_directory=True)
        except (OSError, NotImplementedError):
            return False
    return True


def select_link_kind(preferred: str = "auto") -> LinkKind:
    """Pick the link variant for this host.

    ``auto`` prefers symlinks, falls back to junctions on Windows, and to
    copies only when neither is usable.
    """
    if preferred != "auto":
        return LinkKind(preferred)
    if can_symlink():
        return LinkKind.SYMLINK
    if os.name == "nt":
        logger.debug("Symlinks unavailable, using junctions")
        return LinkKind.JUNCTION
    logger.warning("Neither symlinks nor junctions are available; links will be copies")
    return LinkKind.COPY
