"""
Drift report between inline %%block: directives and persisted blocks.

The persisted block table is authoritative for integrity; directives in the
diagram source are rendering hints that can drift. This module only reports
the drift, it never writes to either side.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from erblocks.directives.parser import parse_directives
from erblocks.directives.types import Directive
from erblocks.graph.store import BlockStore
from erblocks.graph.traversal import require_diagram
from erblocks.graph.types import Edge


@dataclass
class TargetMismatch:
    entity_key: str
    directive_child_id: str
    block_child_id: str
    block_id: str

    def to_dict(self) -> dict:
        return {
            "entity_key": self.entity_key,
            "directive_child_id": self.directive_child_id,
            "block_child_id": self.block_child_id,
            "block_id": self.block_id,
        }


@dataclass
class DriftReport:
    # Directives with no persisted edge for their entity key
    missing_edges: List[Directive] = field(default_factory=list)
    # Persisted edges with no directive in the source
    orphan_edges: List[Edge] = field(default_factory=list)
    mismatched: List[TargetMismatch] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.missing_edges or self.orphan_edges or self.mismatched)

    def to_dict(self) -> dict:
        return {
            "in_sync": self.in_sync,
            "missing_edges": [d.to_dict() for d in self.missing_edges],
            "orphan_edges": [e.to_dict() for e in self.orphan_edges],
            "mismatched": [m.to_dict() for m in self.mismatched],
        }


def diff_directives(directives: List[Directive], edges: List[Edge]) -> DriftReport:
    """Compare one diagram's directives with the blocks it owns."""
    report = DriftReport()
    edges_by_key: Dict[str, Edge] = {e.parent_entity_key: e for e in edges}
    seen_keys = set()

    for directive in directives:
        # first directive per key is the one the renderer uses
        if directive.entity_key in seen_keys:
            continue
        seen_keys.add(directive.entity_key)

        edge = edges_by_key.get(directive.entity_key)
        if edge is None:
            report.missing_edges.append(directive)
        elif edge.child_diagram_id != directive.child_diagram_id:
            report.mismatched.append(
                TargetMismatch(
                    entity_key=directive.entity_key,
                    directive_child_id=directive.child_diagram_id,
                    block_child_id=edge.child_diagram_id,
                    block_id=edge.id,
                )
            )

    report.orphan_edges = [e for e in edges if e.parent_entity_key not in seen_keys]
    return report


async def drift_report(store: BlockStore, parent_id: str) -> DriftReport:
    """Drift between the stored source of `parent_id` and the blocks it owns."""
    await require_diagram(store, parent_id)
    source = await store.get_diagram_source(parent_id) or ""
    edges = await store.list_outbound(parent_id)
    return diff_directives(parse_directives(source), edges)
