"""
Operations a front end builds its commands on.

Each takes an optional :class:`~grove.core.Grove`; without one the grove is
discovered from the environment. Composite operations undo the part they
already committed when a later step fails.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import toml

from grove.config.paths import get_manifest_path
from grove.core import Grove
from grove.errors import DuplicateNameError, FilesystemError, PathConflictError
from grove.links.graph import LinkEdge, LinkKind
from grove.links.materializer import ReconcileReport
from grove.naming import Name, NameLike, parse, to_path
from grove.registry import Node, NodeKind, WorkspaceNode

logger = logging.getLogger(__name__)

DEFAULT_BUILD_SCRIPT = 'echo "No build targets" && exit 1'


def _grove(grove: Optional[Grove]) -> Grove:
    return grove if grove is not None else Grove.open()


def write_manifest(tree_root: Path, name: Name, kind: NodeKind) -> Path:
    manifest = get_manifest_path(tree_root)
    data = {
        'tree': {'name': str(name), 'kind': kind.value},
        'scripts': {'build': DEFAULT_BUILD_SCRIPT},
    }
    with open(manifest, 'w', encoding='utf-8') as f:
        toml.dump(data, f)
    return manifest


def _create_tree_dir(path: Path, name: Name) -> None:
    if path.exists():
        raise FilesystemError(f"Cannot create {name}: {path} already exists", path=path)
    try:
        path.mkdir(parents=True)
    except OSError as e:
        raise FilesystemError(f"Could not create {path}: {e}", path=path) from e


def init(name: NameLike, kind: Union[NodeKind, str] = NodeKind.STANDALONE,
         grove: Optional[Grove] = None) -> Node:
    """Create and register a new repository tree.

    Raises:
        ValueError: ``kind`` is not a repository kind
        DuplicateNameError / PathConflictError: name or tree location taken
    """
    g = _grove(grove)
    name = parse(name)
    kind = NodeKind(kind)
    if not kind.is_repository:
        raise ValueError(f"init creates repositories; use workspace_init for {name}")

    if g.registry.contains(name):
        raise DuplicateNameError(name)

    tree_root = g.repositories_dir / to_path(name)
    g.registry.check_root(name, tree_root)
    _create_tree_dir(tree_root, name)
    try:
        write_manifest(tree_root, name, kind)
        node = g.registry.register(name, kind, tree_root)
    except BaseException:
        shutil.rmtree(tree_root, ignore_errors=True)
        raise
    return node


def workspace_init(name: NameLike, repository: Optional[NameLike] = None,
                   grove: Optional[Grove] = None) -> WorkspaceNode:
    """Create and register a workspace, optionally bound to a repository."""
    g = _grove(grove)
    name = parse(name)
    if g.registry.contains(name):
        raise DuplicateNameError(name)

    tree_root = g.workspaces_dir / to_path(name)
    g.registry.check_root(name, tree_root)
    _create_tree_dir(tree_root, name)
    try:
        node = g.registry.register(name, NodeKind.WORKSPACE, tree_root, repository=repository)
    except BaseException:
        shutil.rmtree(tree_root, ignore_errors=True)
        raise
    return node


def workspace_which(name: NameLike, grove: Optional[Grove] = None) -> Path:
    return _grove(grove).registry.lookup(name).root_path


def link_init(source: NameLike, alias: str, target: NameLike,
              kind: Optional[Union[LinkKind, str]] = None,
              grove: Optional[Grove] = None) -> LinkEdge:
    """Add a link to the graph and realize it in the source tree.

    If the link cannot be realized the edge is removed again and the
    materialization error is raised.
    """
    g = _grove(grove)
    kind = LinkKind(kind) if kind is not None else g.link_kind
    edge = g.graph.create_link(source, alias, target, kind)
    try:
        g.materializer.materialize(edge)
    except BaseException:
        logger.warning("Rolling back %s after materialization failed", edge)
        g.graph.remove_link(edge.source, edge.alias)
        raise
    return edge


def link_remove(source: NameLike, alias: str, grove: Optional[Grove] = None) -> LinkEdge:
    """Remove the on-disk link, then the edge."""
    g = _grove(grove)
    edge = g.graph.get(source, alias)
    g.materializer.dematerialize(edge)
    return g.graph.remove_link(edge.source, edge.alias)


def exec(target: NameLike, command: str, args: Sequence[str] = (),
         grove: Optional[Grove] = None) -> int:
    return _grove(grove).dispatcher.exec(target, command, args)


def reconcile(name: NameLike, repair: bool = False,
              grove: Optional[Grove] = None) -> ReconcileReport:
    g = _grove(grove)
    if repair:
        return g.materializer.repair(name)
    return g.materializer.reconcile(name)


def ls(prefix: Optional[NameLike] = None, grove: Optional[Grove] = None) -> Iterator[Node]:
    return _grove(grove).registry.list(prefix)


def dependencies(name: NameLike, grove: Optional[Grove] = None) -> List[Name]:
    """All names ``name`` reaches through links, depth-first."""
    return _grove(grove).graph.dependencies(name)


def delete(name: NameLike, cascade_links: bool = False, grove: Optional[Grove] = None) -> Node:
    """Unregister ``name`` and delete its tree if it lives under the grove root.

    With ``cascade_links`` its outgoing links are dematerialized and removed
    first; links pointing at it always block the deletion. A tree holding
    another registered root is never deleted (PathConflictError).
    """
    g = _grove(grove)
    name = parse(name)
    with g.store.transaction():
        root = g.registry.lookup(name).root_path
        nested = g.registry.nested_in(root)
        if nested:
            raise PathConflictError(name, root, nested[0].name, "contains")
        incoming = list(g.graph.edges_to(name))
        if cascade_links and not incoming:
            for edge in g.graph.edges_from(name):
                g.materializer.dematerialize(edge)
        node = g.registry.remove(name, cascade_links=cascade_links)
        g.materializer.forget_tree(name)

    managed = (g.repositories_dir.resolve(), g.workspaces_dir.resolve())
    if any(Path(root).is_relative_to(base) for base in managed) and root.exists():
        try:
            shutil.rmtree(root)
        except OSError as e:
            raise FilesystemError(f"Removed {name} but could not delete {root}: {e}",
                                  path=root) from e
        logger.info("Deleted %s", root)
    return node
