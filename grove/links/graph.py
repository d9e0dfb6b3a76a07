"""
Link graph between registered nodes.

Edges are directed (source depends on target), named by an alias that is
unique per source, and the edge set is kept acyclic: every insertion first
walks the existing edges from the target and rejects the link if the source
is reachable.

Edges live in ``.grove/links.json`` and share the registry's state lock.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from grove.errors import (
    AliasExistsError,
    CycleDetectedError,
    UnknownAliasError,
    UnknownSourceError,
    UnknownTargetError,
)
from grove.naming import Name, NameLike, parse, validate_alias
from grove.state.storage import PersistentState

logger = logging.getLogger(__name__)


class LinkKind(Enum):
    """How a link is realized on disk."""
    SYMLINK = "symlink"
    JUNCTION = "junction"
    COPY = "copy"


@dataclass(frozen=True)
class LinkEdge:
    """A named dependency from ``source`` on ``target``."""
    source: Name
    alias: str
    target: Name
    kind: LinkKind
    created_at: str

    def to_record(self) -> Dict[str, Any]:
        return {
            'source': str(self.source),
            'alias': self.alias,
            'target': str(self.target),
            'kind': self.kind.value,
            'created_at': self.created_at,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "LinkEdge":
        return cls(
            source=parse(record['source']),
            alias=validate_alias(record['alias']),
            target=parse(record['target']),
            kind=LinkKind(record.get('kind', LinkKind.SYMLINK.value)),
            created_at=record.get('created_at', ''),
        )

    def __str__(self) -> str:
        return f"{self.source}/{self.alias} -> {self.target}"


class LinkGraph(PersistentState):
    """Directed acyclic graph of links layered over the registry."""

    def __init__(self, registry):
        """
        Args:
            registry: Registry whose names the edges refer to; it shares its
                state store (and lock) with this graph.
        """
        self.registry = registry
        self._out: Dict[Name, Dict[str, LinkEdge]] = {}
        self._in: Dict[Name, Dict[tuple, LinkEdge]] = {}
        super().__init__(registry.store, registry.store.links_file)
        registry.bind_link_graph(self)

    # -- persistence -------------------------------------------------------

    def _reset(self) -> None:
        self._out = {}
        self._in = {}

    def _apply_document(self, data: Dict[str, Any]) -> None:
        for record in data.get('links', []):
            self._add(LinkEdge.from_record(record))

    def _to_document(self) -> Dict[str, Any]:
        return {'links': [edge.to_record() for edge in self._all_edges()]}

    # -- adjacency primitives ---------------------------------------------

    def _add(self, edge: LinkEdge) -> None:
        self._out.setdefault(edge.source, {})[edge.alias] = edge
        self._in.setdefault(edge.target, {})[(edge.source, edge.alias)] = edge

    def _discard(self, edge: LinkEdge) -> None:
        aliases = self._out.get(edge.source, {})
        aliases.pop(edge.alias, None)
        if not aliases:
            self._out.pop(edge.source, None)
        incoming = self._in.get(edge.target, {})
        incoming.pop((edge.source, edge.alias), None)
        if not incoming:
            self._in.pop(edge.target, None)

    def _all_edges(self) -> List[LinkEdge]:
        edges = [edge for aliases in self._out.values() for edge in aliases.values()]
        edges.sort(key=lambda e: (str(e.source), e.alias))
        return edges

    def _successors(self, name: Name) -> List[Name]:
        return sorted({edge.target for edge in self._out.get(name, {}).values()})

    def _find_path(self, start: Name, goal: Name) -> Optional[List[Name]]:
        """Depth-first search along outgoing edges; path start..goal or None."""
        parent: Dict[Name, Optional[Name]] = {start: None}
        stack = [start]
        while stack:
            current = stack.pop()
            if current == goal:
                path = [current]
                while parent[path[-1]] is not None:
                    path.append(parent[path[-1]])
                path.reverse()
                return path
            for nxt in self._successors(current):
                if nxt not in parent:
                    parent[nxt] = current
                    stack.append(nxt)
        return None

    # -- public API --------------------------------------------------------

    def create_link(self, source: NameLike, alias: str, target: NameLike,
                    kind: Union[LinkKind, str] = LinkKind.SYMLINK) -> LinkEdge:
        """Insert a new edge.

        Raises:
            InvalidNameError: bad alias or name
            UnknownSourceError / UnknownTargetError: name not registered
            AliasExistsError: alias already used from this source
            CycleDetectedError: target already reaches source
        """
        alias = validate_alias(alias)
        source = parse(source)
        target = parse(target)
        kind = LinkKind(kind)

        with self.mutation():
            self.registry.refresh()
            if not self.registry.contains(source):
                raise UnknownSourceError(source)
            if not self.registry.contains(target):
                raise UnknownTargetError(target)

            existing = self._out.get(source, {}).get(alias)
            if existing is not None:
                raise AliasExistsError(source, alias, existing.target)

            path = self._find_path(target, source)
            if path is not None:
                raise CycleDetectedError(source, alias, target, [source] + path)

            edge = LinkEdge(
                source=source,
                alias=alias,
                target=target,
                kind=kind,
                created_at=datetime.now().isoformat(),
            )
            self._add(edge)

        logger.info("Linked %s (%s)", edge, kind.value)
        return edge

    def remove_link(self, source: NameLike, alias: str) -> LinkEdge:
        """Remove the edge ``source/alias``.

        Raises:
            UnknownAliasError: no such alias on source
        """
        source = parse(source)
        with self.mutation():
            edge = self._out.get(source, {}).get(alias)
            if edge is None:
                raise UnknownAliasError(source, alias)
            self._discard(edge)

        logger.info("Unlinked %s", edge)
        return edge

    def get(self, source: NameLike, alias: str) -> LinkEdge:
        source = parse(source)
        self.refresh()
        edge = self._out.get(source, {}).get(alias)
        if edge is None:
            raise UnknownAliasError(source, alias)
        return edge

    def edges_from(self, name: NameLike) -> Iterator[LinkEdge]:
        """Outgoing edges of ``name`` ordered by alias."""
        name = parse(name)
        self.refresh()
        edges = sorted(self._out.get(name, {}).values(), key=lambda e: e.alias)
        return iter(edges)

    def edges_to(self, name: NameLike) -> Iterator[LinkEdge]:
        """Incoming edges of ``name`` ordered by (source, alias)."""
        name = parse(name)
        self.refresh()
        edges = sorted(self._in.get(name, {}).values(), key=lambda e: (str(e.source), e.alias))
        return iter(edges)

    def edges(self) -> Iterator[LinkEdge]:
        self.refresh()
        return iter(self._all_edges())

    def dependencies(self, name: NameLike) -> List[Name]:
        """Every name reachable from ``name``, in depth-first discovery order."""
        name = parse(name)
        self.refresh()
        seen: Set[Name] = set()
        order: List[Name] = []

        def visit(node: Name) -> None:
            for nxt in self._successors(node):
                if nxt not in seen:
                    seen.add(nxt)
                    order.append(nxt)
                    visit(nxt)

        visit(name)
        return order

    def dependents(self, name: NameLike) -> List[Name]:
        """Every name that reaches ``name``, sorted."""
        name = parse(name)
        self.refresh()
        seen: Set[Name] = set()
        queue = deque([name])
        while queue:
            current = queue.popleft()
            for edge in self._in.get(current, {}).values():
                if edge.source not in seen:
                    seen.add(edge.source)
                    queue.append(edge.source)
        return sorted(seen)

    def topological_order(self) -> List[Name]:
        """All linked names, dependencies before their dependents (Kahn's algorithm).

        Raises:
            CycleDetectedError: only if the state file was edited into a cycle
        """
        self.refresh()
        nodes: Set[Name] = set(self._out) | set(self._in)
        # out-degree counts unmet dependencies
        pending = {node: len(self._successors(node)) for node in nodes}
        ready = sorted(node for node, count in pending.items() if count == 0)
        result: List[Name] = []

        while ready:
            current = ready.pop(0)
            result.append(current)
            released = []
            for source in {edge.source for edge in self._in.get(current, {}).values()}:
                pending[source] -= 1
                if pending[source] == 0:
                    released.append(source)
            ready = sorted(ready + released)

        if len(result) != len(nodes):
            leftover = sorted(nodes - set(result))
            start = leftover[0]
            for nxt in self._successors(start):
                path = self._find_path(nxt, start)
                if path is not None:
                    edge = next(e for e in self._out[start].values() if e.target == nxt)
                    raise CycleDetectedError(start, edge.alias, nxt, [start] + path)
            raise CycleDetectedError(start, "?", start, leftover)
        return result
