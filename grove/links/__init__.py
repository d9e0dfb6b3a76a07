"""Link graph and its on-disk realization."""

from grove.links.graph import LinkEdge, LinkGraph, LinkKind
from grove.links.ledger import MaterializationLedger, MaterializedEntry
from grove.links.materializer import LinkMaterializer, ReconcileReport
from grove.links.strategies import can_symlink, select_link_kind

__all__ = [
    'LinkEdge',
    'LinkGraph',
    'LinkKind',
    'LinkMaterializer',
    'MaterializationLedger',
    'MaterializedEntry',
    'ReconcileReport',
    'can_symlink',
    'select_link_kind',
]
