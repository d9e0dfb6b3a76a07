"""Record of the link entries Grove has put on disk.

Only an entry listed here may be replaced or removed by the materializer;
anything else sitting at an alias path belongs to the user. A record is
written before its entry is created, so a crash in between leaves a record
without an entry (reported as missing), never an unrecorded Grove entry.

Stored in ``.grove/materialized.json`` under the shared state lock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from grove.links.graph import LinkEdge, LinkKind
from grove.naming import Name, NameLike, parse, validate_alias
from grove.state.storage import PersistentState, StateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedEntry:
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
    def from_record(cls, record: Dict[str, Any]) -> "MaterializedEntry":
        return cls(
            source=parse(record['source']),
            alias=validate_alias(record['alias']),
            target=parse(record['target']),
            kind=LinkKind(record['kind']),
            created_at=record.get('created_at', ''),
        )


class MaterializationLedger(PersistentState):
    """Which (source, alias) entries on disk were created by Grove."""

    def __init__(self, store: StateStore):
        self._entries: Dict[Tuple[Name, str], MaterializedEntry] = {}
        super().__init__(store, store.materialized_file)

    def _reset(self) -> None:
        self._entries = {}

    def _apply_document(self, data: Dict[str, Any]) -> None:
        for record in data.get('entries', []):
            entry = MaterializedEntry.from_record(record)
            self._entries[(entry.source, entry.alias)] = entry

    def _to_document(self) -> Dict[str, Any]:
        ordered = sorted(self._entries.values(), key=lambda e: (str(e.source), e.alias))
        return {'entries': [entry.to_record() for entry in ordered]}

    def record(self, edge: LinkEdge) -> MaterializedEntry:
        entry = MaterializedEntry(
            source=edge.source,
            alias=edge.alias,
            target=edge.target,
            kind=edge.kind,
            created_at=datetime.now().isoformat(),
        )
        with self.mutation():
            self._entries[(edge.source, edge.alias)] = entry
        logger.debug("Recorded materialization of %s", edge)
        return entry

    def forget(self, source: NameLike, alias: str) -> Optional[MaterializedEntry]:
        source = parse(source)
        with self.mutation():
            entry = self._entries.pop((source, alias), None)
        return entry

    def forget_source(self, source: NameLike) -> List[MaterializedEntry]:
        """Drop every record of ``source`` (its tree is gone)."""
        source = parse(source)
        with self.mutation():
            dropped = [e for key, e in self._entries.items() if key[0] == source]
            for entry in dropped:
                del self._entries[(entry.source, entry.alias)]
        return dropped

    def get(self, source: NameLike, alias: str) -> Optional[MaterializedEntry]:
        self.refresh()
        return self._entries.get((parse(source), alias))

    def entries_for(self, source: NameLike) -> List[MaterializedEntry]:
        source = parse(source)
        self.refresh()
        return sorted(
            (e for key, e in self._entries.items() if key[0] == source),
            key=lambda e: e.alias,
        )
