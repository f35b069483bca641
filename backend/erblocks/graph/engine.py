"""
Block graph integrity engine.

Every operation is a plain async function over a `BlockStore`. Each call
issues its reads and then at most one terminal write; wrap calls in
`erblocks.graph.unit_of_work.run_in_transaction` so that the checks and the
write share one serializable transaction.

Invariants kept on the block table:
  - a block never links a diagram to itself
  - at most one block per (parent diagram, entity key)
  - the blocks, read as directed parent -> child edges, form no cycle
"""

import logging
from typing import Any, Dict, List, Optional

from erblocks.graph.errors import ConflictError, NotFoundError, ValidationError
from erblocks.graph.store import BlockStore
from erblocks.graph.traversal import check_cycle, require_diagram
from erblocks.graph.types import Edge, RemovalResult

logger = logging.getLogger(__name__)

SELF_REFERENCE_MESSAGE = "Cannot create a block that links a diagram to itself"


class _Unset:
    def __repr__(self):
        return "UNSET"


# Marks a patch field that was not supplied (as opposed to an explicit None)
UNSET: Any = _Unset()


async def _check_target(store: BlockStore, parent_id: str, child_id: str) -> None:
    await require_diagram(store, child_id)
    if parent_id == child_id:
        raise ValidationError(SELF_REFERENCE_MESSAGE)


async def create_edge(
    store: BlockStore,
    parent_id: str,
    entity_key: str,
    child_id: str,
    label: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Edge:
    """Link `entity_key` in `parent_id` to the diagram `child_id`."""
    await require_diagram(store, parent_id)
    await _check_target(store, parent_id, child_id)

    existing = await store.find_edge_by_entity_key(parent_id, entity_key)
    if existing:
        raise ConflictError(
            f'Entity "{entity_key}" already has a block in diagram "{parent_id}"'
        )

    await check_cycle(store, parent_id, child_id)

    edge = await store.insert_edge(
        parent_id=parent_id,
        entity_key=entity_key,
        child_id=child_id,
        label=label,
        created_by=created_by,
    )
    logger.info("Created block %s: %s.%s -> %s", edge.id, parent_id, entity_key, child_id)
    return edge


async def get_edge(store: BlockStore, parent_id: str, edge_id: str) -> Edge:
    """Block `edge_id`, which must belong to `parent_id`."""
    await require_diagram(store, parent_id)

    edge = await store.get_edge(edge_id)
    if edge is None:
        raise NotFoundError(f'Block with ID "{edge_id}" not found')
    if edge.parent_diagram_id != parent_id:
        raise NotFoundError(f'Block with ID "{edge_id}" not found in diagram "{parent_id}"')
    return edge


async def update_edge(
    store: BlockStore,
    parent_id: str,
    edge_id: str,
    child_id: Any = UNSET,
    label: Any = UNSET,
) -> Edge:
    """
    Retarget and/or relabel a block.

    Only fields that differ from the stored block are written; a patch that
    changes nothing returns the stored block without a write. `label=None`
    clears the label.
    """
    existing = await get_edge(store, parent_id, edge_id)
    changes: Dict[str, Any] = {}

    if child_id is not UNSET and child_id != existing.child_diagram_id:
        await _check_target(store, parent_id, child_id)
        await check_cycle(store, parent_id, child_id)
        changes["child_diagram_id"] = child_id

    if label is not UNSET and label != existing.label:
        changes["label"] = label

    if not changes:
        return existing

    edge = await store.update_edge(edge_id, changes)
    logger.info("Updated block %s: %s", edge_id, sorted(changes))
    return edge


async def remove_edge(store: BlockStore, parent_id: str, edge_id: str) -> RemovalResult:
    await get_edge(store, parent_id, edge_id)
    await store.delete_edge(edge_id)
    logger.info("Deleted block %s from diagram %s", edge_id, parent_id)
    return RemovalResult(id=edge_id)


async def remove_all_edges_from_parent(store: BlockStore, parent_id: str) -> int:
    await require_diagram(store, parent_id)
    deleted = await store.delete_outbound(parent_id)
    logger.info("Deleted %d block(s) from diagram %s", deleted, parent_id)
    return deleted


async def list_edges_by_parent(store: BlockStore, parent_id: str) -> List[Edge]:
    """Blocks owned by `parent_id`, newest first."""
    await require_diagram(store, parent_id)
    return await store.list_outbound(parent_id)


async def list_edges_by_child(store: BlockStore, child_id: str) -> List[Edge]:
    """Blocks that link into `child_id`, newest first."""
    await require_diagram(store, child_id)
    return await store.list_inbound(child_id)


async def count_edges_by_parent(store: BlockStore, parent_id: str) -> int:
    await require_diagram(store, parent_id)
    return await store.count_outbound(parent_id)


async def find_edge_by_entity_key(
    store: BlockStore, parent_id: str, entity_key: str
) -> Optional[Edge]:
    return await store.find_edge_by_entity_key(parent_id, entity_key)
