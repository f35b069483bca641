"""
Graph walks over the persisted block table.

Two distinct questions are answered here:

  ancestry_path   - ONE root-first breadcrumb path, following a single
                    inbound block per hop. Diagrams may have several parents
                    (the block graph is a DAG, not a tree), so this is a path,
                    not the path.
  descendant_set  - EVERY diagram reachable through outbound blocks. This is
                    the structurally complete walk used for cycle rejection.

Whether a diagram should have a single "primary" parent is an open product
question; until it is settled both walks stay separate.

Both walks keep a visited set, so they terminate even if the stored data
already contains a cycle written around the engine.
"""

import logging
from typing import List, Set

from erblocks.graph.errors import NotFoundError, ValidationError
from erblocks.graph.store import BlockStore

logger = logging.getLogger(__name__)

CYCLE_MESSAGE = "Creating this block would result in a circular reference"


async def require_diagram(store: BlockStore, diagram_id: str) -> None:
    if not await store.diagram_exists(diagram_id):
        raise NotFoundError(f'Diagram with ID "{diagram_id}" not found')


async def walk_ancestry(store: BlockStore, diagram_id: str) -> List[str]:
    path = [diagram_id]
    visited = {diagram_id}
    current = diagram_id

    while True:
        block = await store.first_inbound_edge(current)
        if block is None:
            break  # root reached

        parent = block.parent_diagram_id
        if parent in visited:
            logger.warning(
                "Stored blocks contain a cycle through %s; ancestry walk stopped", parent
            )
            break

        visited.add(parent)
        path.insert(0, parent)
        current = parent

    return path


async def walk_descendants(store: BlockStore, diagram_id: str) -> Set[str]:
    descendants: Set[str] = set()
    to_visit = [diagram_id]
    visited: Set[str] = set()

    while to_visit:
        current = to_visit.pop()
        if current in visited:
            continue
        visited.add(current)

        for block in await store.list_outbound(current):
            child = block.child_diagram_id
            if child not in visited:
                descendants.add(child)
                to_visit.append(child)

    # A stored cycle can lead back to the start; it is never its own descendant
    descendants.discard(diagram_id)
    return descendants


async def ancestry_path(store: BlockStore, diagram_id: str) -> List[str]:
    """Diagram ids from a root down to `diagram_id`, inclusive."""
    await require_diagram(store, diagram_id)
    return await walk_ancestry(store, diagram_id)


async def descendant_set(store: BlockStore, diagram_id: str) -> Set[str]:
    """Every diagram reachable from `diagram_id` through outbound blocks."""
    await require_diagram(store, diagram_id)
    return await walk_descendants(store, diagram_id)


async def check_cycle(store: BlockStore, parent_id: str, child_id: str) -> None:
    """
    Reject a candidate block parent -> child that would close a cycle.

    The ancestry walk is a cheap early rejection, but it follows a single
    inbound block per hop and can miss cycles through other parents. The
    descendant walk is the complete check.
    """
    if child_id in await walk_ancestry(store, parent_id):
        logger.info("Rejected block %s -> %s: child is an ancestor", parent_id, child_id)
        raise ValidationError(CYCLE_MESSAGE)

    if parent_id in await walk_descendants(store, child_id):
        logger.info("Rejected block %s -> %s: parent is a descendant", parent_id, child_id)
        raise ValidationError(CYCLE_MESSAGE)
