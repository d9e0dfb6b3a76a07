"""Registry of repositories and workspaces.

The registry is the single source of truth for which names exist and where
they live. Nodes are indexed by a naming tree (one tree level per name
segment), which is kept separate from the link graph's adjacency maps.

The registry is persisted in ``.grove/registry.json``. It is loaded when the
object is created, transparently refreshed on reads if another process
replaced the file, and every mutation commits atomically under the shared
state lock before returning.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from grove.errors import (
    DuplicateNameError,
    HasDependentsError,
    NotFoundError,
    PathConflictError,
)
from grove.naming import Name, NameLike, parse
from grove.state.storage import PersistentState, StateStore

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    """What a registered name refers to."""
    STANDALONE = "standalone"
    LIBRARY = "library"
    WORKSPACE = "workspace"

    @property
    def is_repository(self) -> bool:
        return self is not NodeKind.WORKSPACE


@dataclass
class RepositoryNode:
    """A registered source tree."""
    name: Name
    kind: NodeKind
    root_path: Path
    created_at: str

    def to_record(self) -> Dict[str, Any]:
        return {
            'name': str(self.name),
            'kind': self.kind.value,
            'root_path': str(self.root_path),
            'created_at': self.created_at,
        }


@dataclass
class WorkspaceNode:
    """A working directory, optionally bound to a repository."""
    name: Name
    root_path: Path
    created_at: str
    repository: Optional[Name] = None
    kind: NodeKind = field(default=NodeKind.WORKSPACE, init=False)

    def to_record(self) -> Dict[str, Any]:
        return {
            'name': str(self.name),
            'kind': self.kind.value,
            'root_path': str(self.root_path),
            'created_at': self.created_at,
            'repository': str(self.repository) if self.repository else None,
        }


Node = Union[RepositoryNode, WorkspaceNode]


def node_from_record(record: Dict[str, Any]) -> Node:
    kind = NodeKind(record['kind'])
    name = parse(record['name'])
    root_path = Path(record['root_path'])
    if kind is NodeKind.WORKSPACE:
        repository = record.get('repository')
        return WorkspaceNode(
            name=name,
            root_path=root_path,
            created_at=record['created_at'],
            repository=parse(repository) if repository else None,
        )
    return RepositoryNode(name=name, kind=kind, root_path=root_path, created_at=record['created_at'])


class _TreeNode:
    """One level of the naming tree."""
    __slots__ = ('children', 'node')

    def __init__(self):
        self.children: Dict[str, _TreeNode] = {}
        self.node: Optional[Node] = None

    def is_empty(self) -> bool:
        return self.node is None and not self.children


def _canonical(path: Union[str, Path]) -> str:
    return os.path.normcase(str(Path(path).resolve()))


def _relation(path: str, other: str) -> Optional[str]:
    """How canonical ``path`` relates to canonical ``other``, if they overlap."""
    if path == other:
        return "same"
    if Path(path).is_relative_to(other):
        return "inside"
    if Path(other).is_relative_to(path):
        return "contains"
    return None


class Registry(PersistentState):
    """Persistent catalog mapping names to repository/workspace nodes."""

    def __init__(self, store: StateStore):
        self._root = _TreeNode()
        self._by_path: Dict[str, Name] = {}
        self._graph = None
        super().__init__(store, store.registry_file)

    def bind_link_graph(self, graph) -> None:
        """Attach the link graph consulted by :meth:`remove`."""
        self._graph = graph

    # -- persistence -------------------------------------------------------

    def _reset(self) -> None:
        self._root = _TreeNode()
        self._by_path = {}

    def _apply_document(self, data: Dict[str, Any]) -> None:
        for record in data.get('nodes', []):
            self._insert(node_from_record(record))

    def _to_document(self) -> Dict[str, Any]:
        return {'nodes': [node.to_record() for node in self._iter_sorted(self._root)]}

    # -- tree primitives ---------------------------------------------------

    def _find(self, name: Name) -> Optional[_TreeNode]:
        current = self._root
        for segment in name.segments:
            current = current.children.get(segment)
            if current is None:
                return None
        return current

    def _insert(self, node: Node) -> None:
        current = self._root
        for segment in node.name.segments:
            current = current.children.setdefault(segment, _TreeNode())
        current.node = node
        self._by_path[_canonical(node.root_path)] = node.name

    def _delete(self, name: Name) -> Node:
        trail = [self._root]
        for segment in name.segments:
            trail.append(trail[-1].children[segment])
        removed = trail[-1].node
        trail[-1].node = None
        # prune empty branches bottom-up
        for depth in range(len(name.segments), 0, -1):
            if not trail[depth].is_empty():
                break
            del trail[depth - 1].children[name.segments[depth - 1]]
        self._by_path.pop(_canonical(removed.root_path), None)
        return removed

    def _iter_sorted(self, start: _TreeNode) -> Iterator[Node]:
        collected: List[Node] = []
        stack = [start]
        while stack:
            tree_node = stack.pop()
            if tree_node.node is not None:
                collected.append(tree_node.node)
            stack.extend(tree_node.children.values())
        collected.sort(key=lambda n: str(n.name))
        yield from collected

    # -- public API --------------------------------------------------------

    def register(self, name: NameLike, kind: Union[NodeKind, str], root_path: Union[str, Path],
                 repository: Optional[NameLike] = None) -> Node:
        """Register a new node.

        Raises:
            DuplicateNameError: the name already exists
            PathConflictError: root_path equals, lies inside, or contains the
                root of another node
            NotFoundError: a workspace is bound to an unknown repository
        """
        name = parse(name)
        kind = NodeKind(kind)
        root_path = Path(root_path).resolve()
        bound = parse(repository) if repository is not None else None

        with self.mutation():
            existing = self._find(name)
            if existing is not None and existing.node is not None:
                raise DuplicateNameError(name)

            self._check_root(name, root_path)

            created_at = datetime.now().isoformat()
            if kind is NodeKind.WORKSPACE:
                if bound is not None:
                    bound_tree = self._find(bound)
                    if bound_tree is None or bound_tree.node is None:
                        raise NotFoundError(bound, "repository")
                node = WorkspaceNode(name=name, root_path=root_path, created_at=created_at,
                                     repository=bound)
            else:
                node = RepositoryNode(name=name, kind=kind, root_path=root_path,
                                      created_at=created_at)
            self._insert(node)

        logger.info("Registered %s %s at %s", kind.value, name, root_path)
        return node

    def _check_root(self, name: Name, root_path: Path) -> None:
        canonical = _canonical(root_path)
        for other, owner in self._by_path.items():
            relation = _relation(canonical, other)
            if relation is not None:
                raise PathConflictError(name, root_path, owner, relation)

    def check_root(self, name: NameLike, root_path: Union[str, Path]) -> None:
        """Raise PathConflictError if ``root_path`` equals, lies inside, or
        contains the root of a registered node.

        Roots never nest: deleting one tree must not reach into another.
        """
        self.refresh()
        self._check_root(parse(name), Path(root_path).resolve())

    def nested_in(self, path: Union[str, Path]) -> List[Node]:
        """Registered nodes whose root lies strictly inside ``path``."""
        self.refresh()
        canonical = _canonical(path)
        return [
            self.lookup(owner) for other, owner in sorted(self._by_path.items())
            if _relation(other, canonical) == "inside"
        ]

    def lookup(self, name: NameLike) -> Node:
        """Return the node registered under ``name``.

        Raises:
            NotFoundError: nothing is registered under that name
        """
        name = parse(name)
        self.refresh()
        tree_node = self._find(name)
        if tree_node is None or tree_node.node is None:
            raise NotFoundError(name)
        return tree_node.node

    def contains(self, name: NameLike) -> bool:
        name = parse(name)
        self.refresh()
        tree_node = self._find(name)
        return tree_node is not None and tree_node.node is not None

    def list(self, prefix: Optional[NameLike] = None) -> Iterator[Node]:
        """Yield the strict descendants of ``prefix`` ordered by dotted name.

        With no prefix every node is yielded. Each call starts a new pass over
        the snapshot current at the time of the call.
        """
        self.refresh()
        if prefix is None:
            return self._iter_sorted(self._root)
        prefix = parse(prefix)
        start = self._find(prefix)
        if start is None:
            return iter(())
        return (node for node in self._iter_sorted(start) if node.name != prefix)

    def owner_of(self, path: Union[str, Path]) -> Optional[Node]:
        """Return the node whose root is ``path``, if any."""
        self.refresh()
        owner = self._by_path.get(_canonical(path))
        return self.lookup(owner) if owner is not None else None

    def remove(self, name: NameLike, cascade_links: bool = False) -> Node:
        """Remove a node.

        A node that is still the target of a link is never removed. Outgoing
        links are removed along with it only when ``cascade_links`` is set.

        Raises:
            NotFoundError: unknown name
            HasDependentsError: incoming links exist, or outgoing links exist
                and cascade_links is false
        """
        name = parse(name)
        with self.mutation():
            tree_node = self._find(name)
            if tree_node is None or tree_node.node is None:
                raise NotFoundError(name)

            if self._graph is not None:
                incoming = list(self._graph.edges_to(name))
                if incoming:
                    raise HasDependentsError(name, incoming, direction="incoming")
                outgoing = list(self._graph.edges_from(name))
                if outgoing and not cascade_links:
                    raise HasDependentsError(name, outgoing, direction="outgoing")
                # Links are committed first so a crash never leaves an
                # edge pointing at a missing node.
                for edge in outgoing:
                    self._graph.remove_link(edge.source, edge.alias)

            removed = self._delete(name)

        logger.info("Removed %s %s", removed.kind.value, name)
        return removed

    def __len__(self) -> int:
        self.refresh()
        return len(self._by_path)
