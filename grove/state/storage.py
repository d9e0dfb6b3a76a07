"""State file helpers: atomic JSON commits and snapshot loading.

Every state file is replaced atomically (temp file in the same directory,
flush, fsync, ``os.replace``) so a concurrent reader sees either the old or
the new document, never a partial one.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from grove.errors import FilesystemError, StateCorruptedError
from grove.state.lock import StateLock

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


def atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON to ``path`` via write-temp/fsync/rename."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="utf-8", delete=False, dir=path.parent,
            prefix=f".{path.name}.", suffix=".tmp",
        ) as tmp:
            json.dump(data, tmp, indent=2, sort_keys=False)
            tmp.write("\n")
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = tmp.name
        try:
            os.replace(tmp_path, path)
        except OSError:
            os.unlink(tmp_path)
            raise
        _fsync_dir(path.parent)
    except OSError as e:
        raise FilesystemError(f"Could not commit {path}: {e}", path=path) from e


def _fsync_dir(directory: Path) -> None:
    # Directory fsync persists the rename; not available on Windows.
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    """Load a state document, quarantining it if it does not parse.

    Returns None when the file does not exist.

    Raises:
        StateCorruptedError: after moving the unreadable file aside.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        quarantined = quarantine(path)
        raise StateCorruptedError(
            f"State file {path} is corrupt ({e}); moved to {quarantined}", path=path
        ) from e
    except OSError as e:
        raise FilesystemError(f"Could not read {path}: {e}", path=path) from e

    if not isinstance(data, dict):
        quarantined = quarantine(path)
        raise StateCorruptedError(
            f"State file {path} does not hold a JSON object; moved to {quarantined}",
            path=path,
        )
    return data


def quarantine(path: Path) -> Path:
    """Move a broken state file to ``<stem>.corrupt.<timestamp><suffix>``."""
    stamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
    target = path.with_name(f"{path.stem}.corrupt.{stamp}{path.suffix}")
    os.replace(path, target)
    logger.warning("Quarantined corrupt state file %s -> %s", path, target)
    return target


def _signature(path: Path) -> Optional[Tuple[int, int, int]]:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    return (st.st_mtime_ns, st.st_size, st.st_ino)


class StateStore:
    """The state directory shared by the registry and the link graph.

    Holds the file locations and the single advisory lock that serializes
    every read-modify-write cycle across processes.
    """

    REGISTRY_FILENAME = "registry.json"
    LINKS_FILENAME = "links.json"
    MATERIALIZED_FILENAME = "materialized.json"
    LOCK_FILENAME = "state.lock"

    def __init__(self, state_dir: Path, lock_timeout: float = 10.0):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.registry_file = self.state_dir / self.REGISTRY_FILENAME
        self.links_file = self.state_dir / self.LINKS_FILENAME
        self.materialized_file = self.state_dir / self.MATERIALIZED_FILENAME
        self.lock = StateLock(self.state_dir / self.LOCK_FILENAME, timeout=lock_timeout)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the state lock; nested use within one process is allowed."""
        with self.lock.hold():
            yield


class PersistentState:
    """Base for in-memory structures backed by one JSON state file.

    Lifecycle: load at construction, transparently re-load on read when the
    file changed on disk, and for each mutation re-load under the lock, apply,
    flush, or restore the on-disk snapshot if anything fails.
    """

    def __init__(self, store: StateStore, path: Path):
        self.store = store
        self.path = Path(path)
        self._loaded_signature = None
        self.load()

    # Subclasses implement these three.
    def _reset(self) -> None:
        raise NotImplementedError

    def _apply_document(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _to_document(self) -> Dict[str, Any]:
        raise NotImplementedError

    def load(self) -> None:
        """(Re)load the snapshot from disk."""
        signature = _signature(self.path)
        data = read_json(self.path)
        self._reset()
        if data is not None:
            self._apply_document(data)
        self._loaded_signature = signature

    def refresh(self) -> None:
        """Re-load only if another writer replaced the file."""
        if _signature(self.path) != self._loaded_signature:
            logger.debug("State file %s changed on disk, reloading", self.path)
            self.load()

    def flush(self) -> None:
        document = self._to_document()
        document["version"] = STATE_FORMAT_VERSION
        document["updated_at"] = datetime.now().isoformat()
        atomic_write_json(self.path, document)
        self._loaded_signature = _signature(self.path)

    @contextmanager
    def mutation(self) -> Iterator[None]:
        """Lock, take a fresh snapshot, and commit on success."""
        with self.store.transaction():
            self.load()
            try:
                yield
                self.flush()
            except BaseException:
                self.load()
                raise
