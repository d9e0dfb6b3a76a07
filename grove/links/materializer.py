"""Realize link edges on disk and reconcile the disk with the link graph.

The link graph is authoritative; what sits in a workspace directory is a
projection of it that can drift (a crash between committing an edge and
creating its link, or a manual edit). :meth:`LinkMaterializer.reconcile`
reports that drift and :meth:`LinkMaterializer.repair` removes it.

Entries that Grove did not create are never replaced or deleted. An entry
counts as Grove's only if the materialization ledger holds a record for its
(source, alias) and it is still a link (or a copy carrying Grove's marker
for that source and alias).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from grove.errors import AliasPathOccupiedError, FilesystemError
from grove.links import gitignore
from grove.links.graph import LinkEdge, LinkGraph, LinkKind
from grove.links.ledger import MaterializationLedger
from grove.links.strategies import EntryInfo, inspect_entry, strategy_for
from grove.naming import Name, NameLike, parse
from grove.registry import Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileReport:
    """Per-alias comparison of the link graph against the workspace directory."""
    name: str
    missing: FrozenSet[str] = field(default_factory=frozenset)
    stale: FrozenSet[str] = field(default_factory=frozenset)
    matched: FrozenSet[str] = field(default_factory=frozenset)
    blocked: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_clean(self) -> bool:
        return not (self.missing or self.stale or self.blocked)

    def to_dict(self) -> Dict[str, object]:
        return {
            'name': self.name,
            'missing': sorted(self.missing),
            'stale': sorted(self.stale),
            'matched': sorted(self.matched),
            'blocked': sorted(self.blocked),
        }


class LinkMaterializer:
    """Creates, removes and audits on-disk links for graph edges."""

    def __init__(self, registry: Registry, graph: LinkGraph, manage_gitignore: bool = True,
                 ledger: Optional[MaterializationLedger] = None):
        self.registry = registry
        self.graph = graph
        self.store = registry.store
        self.manage_gitignore = manage_gitignore
        self.ledger = ledger if ledger is not None else MaterializationLedger(registry.store)

    def _is_grove_entry(self, source: Name, alias: str, info: Optional[EntryInfo]) -> bool:
        """True if ``info`` is an entry Grove made for ``source/alias``."""
        if info is None or info.kind is None:
            return False
        if self.ledger.get(source, alias) is None:
            return False
        if info.kind is LinkKind.COPY:
            marker = info.marker or {}
            return marker.get('source') == str(source) and marker.get('alias') == alias
        return True

    def _remove_entry(self, info: EntryInfo) -> None:
        strategy_for(info.kind).remove(info.path)

    def materialize(self, edge: LinkEdge) -> Path:
        """Create ``<source root>/<alias>`` pointing at the target root.

        Raises:
            NotFoundError: source or target no longer registered
            AliasPathOccupiedError: the alias path holds an entry Grove did
                not create for this alias
            FilesystemError: the link could not be created
        """
        source_root = self.registry.lookup(edge.source).root_path
        target_root = self.registry.lookup(edge.target).root_path
        link_path = source_root / edge.alias
        strategy = strategy_for(edge.kind)

        with self.store.transaction():
            if not source_root.is_dir():
                raise FilesystemError(
                    f"Cannot materialize {edge}: source root {source_root} does not exist",
                    path=source_root,
                )
            if not target_root.is_dir():
                raise FilesystemError(
                    f"Cannot materialize {edge}: target root {target_root} does not exist",
                    path=target_root,
                )

            info = inspect_entry(link_path)
            if info is not None:
                owned = self._is_grove_entry(edge.source, edge.alias, info)
                if strategy.matches(info, target_root, edge):
                    if owned:
                        self._track(source_root, edge.alias)
                    logger.debug("%s already materialized at %s", edge, link_path)
                    return link_path
                if not owned:
                    raise AliasPathOccupiedError(edge.source, edge.alias, link_path)
                logger.warning("Replacing stale link entry %s for %s", link_path, edge)
                self._remove_entry(info)

            # Recorded first: a crash before the entry exists reads as missing.
            self.ledger.record(edge)
            try:
                strategy.create(target_root, link_path, edge)
            except BaseException:
                self.ledger.forget(edge.source, edge.alias)
                raise
            self._track(source_root, edge.alias)

        logger.info("Materialized %s as %s at %s", edge, edge.kind.value, link_path)
        return link_path

    def dematerialize(self, edge: LinkEdge) -> None:
        """Remove the on-disk link for ``edge``; a no-op if it is already gone."""
        source_root = self.registry.lookup(edge.source).root_path
        link_path = source_root / edge.alias

        with self.store.transaction():
            info = inspect_entry(link_path)
            if info is None:
                logger.debug("%s has no entry at %s", edge, link_path)
            elif self._is_grove_entry(edge.source, edge.alias, info):
                self._remove_entry(info)
                logger.info("Dematerialized %s", edge)
            else:
                logger.warning(
                    "Leaving %s in place: it is not a Grove link for %s", link_path, edge
                )
            if self.ledger.forget(edge.source, edge.alias) is not None:
                self._untrack(source_root, edge.alias)

    def reconcile(self, name: NameLike) -> ReconcileReport:
        """Compare the edges of ``name`` with the entries in its root."""
        name = parse(name)
        node = self.registry.lookup(name)
        root = node.root_path
        edges = {edge.alias: edge for edge in self.graph.edges_from(name)}

        missing, stale, matched, blocked = set(), set(), set(), set()
        for alias, edge in edges.items():
            info = inspect_entry(root / alias)
            if info is None:
                missing.add(alias)
                continue
            target_root = self.registry.lookup(edge.target).root_path
            if strategy_for(edge.kind).matches(info, target_root, edge):
                matched.add(alias)
            elif self._is_grove_entry(name, alias, info):
                stale.add(alias)
            else:
                blocked.add(alias)

        # recorded entries whose edge is gone
        for entry in self.ledger.entries_for(name):
            if entry.alias in edges:
                continue
            if self._is_grove_entry(name, entry.alias, inspect_entry(root / entry.alias)):
                stale.add(entry.alias)

        report = ReconcileReport(
            name=str(name),
            missing=frozenset(missing),
            stale=frozenset(stale),
            matched=frozenset(matched),
            blocked=frozenset(blocked),
        )
        logger.debug("Reconciled %s: %s", name, report.to_dict())
        return report

    def repair(self, name: NameLike) -> ReconcileReport:
        """Bring the root of ``name`` in line with its edges.

        Stale entries are removed (and re-created when an edge still uses the
        alias), missing edges are materialized. Blocked aliases are left alone.
        """
        name = parse(name)
        with self.store.transaction():
            report = self.reconcile(name)
            root = self.registry.lookup(name).root_path
            edges = {edge.alias: edge for edge in self.graph.edges_from(name)}

            for alias in sorted(report.stale):
                if alias in edges:
                    self.materialize(edges[alias])
                    continue
                info = inspect_entry(root / alias)
                logger.warning("Removing orphaned link entry %s", info.path)
                self._remove_entry(info)
                self.ledger.forget(name, alias)
                self._untrack(root, alias)

            for alias in sorted(report.missing):
                self.materialize(edges[alias])

            # records left behind by a crash before their entry was created
            for entry in self.ledger.entries_for(name):
                if entry.alias not in edges and inspect_entry(root / entry.alias) is None:
                    self.ledger.forget(name, entry.alias)
                    self._untrack(root, entry.alias)

            if report.blocked:
                logger.warning(
                    "Not repairing %s in %s: paths are occupied by non-Grove entries",
                    ", ".join(sorted(report.blocked)), name,
                )
            return self.reconcile(name)

    def forget_tree(self, name: NameLike) -> None:
        """Drop the records of a tree that is being deleted."""
        dropped = self.ledger.forget_source(name)
        if dropped:
            logger.debug("Forgot %d materialization record(s) of %s", len(dropped), name)

    def _track(self, root: Path, alias: str) -> None:
        if not self.manage_gitignore:
            return
        try:
            gitignore.add_entry(root, gitignore.entry_for_alias(alias))
        except OSError as e:
            raise FilesystemError(f"Could not update {root / '.gitignore'}: {e}", path=root) from e

    def _untrack(self, root: Path, alias: str) -> None:
        if not self.manage_gitignore:
            return
        try:
            gitignore.remove_entry(root, gitignore.entry_for_alias(alias))
        except OSError as e:
            raise FilesystemError(f"Could not update {root / '.gitignore'}: {e}", path=root) from e
