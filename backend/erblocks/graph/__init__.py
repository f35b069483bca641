"""
Block graph integrity engine: persisted parent -> child diagram links.
"""

from erblocks.graph.errors import (
    BlockGraphError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from erblocks.graph.types import Edge, RemovalResult
from erblocks.graph.store import BlockStore, SqlAlchemyBlockStore
from erblocks.graph.traversal import ancestry_path, check_cycle, descendant_set
from erblocks.graph.engine import (
    UNSET,
    count_edges_by_parent,
    create_edge,
    find_edge_by_entity_key,
    get_edge,
    list_edges_by_child,
    list_edges_by_parent,
    remove_all_edges_from_parent,
    remove_edge,
    update_edge,
)
from erblocks.graph.unit_of_work import run_in_transaction

__all__ = [
    "BlockGraphError",
    "ConflictError",
    "NotFoundError",
    "ValidationError",
    "Edge",
    "RemovalResult",
    "BlockStore",
    "SqlAlchemyBlockStore",
    "ancestry_path",
    "check_cycle",
    "descendant_set",
    "UNSET",
    "count_edges_by_parent",
    "create_edge",
    "find_edge_by_entity_key",
    "get_edge",
    "list_edges_by_child",
    "list_edges_by_parent",
    "remove_all_edges_from_parent",
    "remove_edge",
    "update_edge",
    "run_in_transaction",
]
