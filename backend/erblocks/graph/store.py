"""
Persistence capability used by the block graph engine.

The engine only talks to a `BlockStore`; it never caches anything between
calls. `SqlAlchemyBlockStore` is the production implementation on top of an
`AsyncSession` whose transaction is owned by the caller
(see `erblocks.graph.unit_of_work`).
"""

from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from erblocks.db.models import Diagram, DiagramBlock
from erblocks.graph.errors import ConflictError, NotFoundError
from erblocks.graph.types import Edge

UNIQUE_INDEX = "diagram_blocks_parent_entity_unique_idx"

# unique_violation, foreign_key_violation
UNIQUE_SQLSTATE = "23505"
FOREIGN_KEY_SQLSTATE = "23503"


class BlockStore(Protocol):
    """Abstraction for the diagram/block tables."""

    async def diagram_exists(self, diagram_id: str) -> bool: ...

    async def get_diagram_source(self, diagram_id: str) -> Optional[str]: ...

    async def get_edge(self, edge_id: str) -> Optional[Edge]: ...

    async def find_edge_by_entity_key(self, parent_id: str, entity_key: str) -> Optional[Edge]: ...

    async def first_inbound_edge(self, child_id: str) -> Optional[Edge]: ...

    async def list_outbound(self, parent_id: str) -> List[Edge]: ...

    async def list_inbound(self, child_id: str) -> List[Edge]: ...

    async def count_outbound(self, parent_id: str) -> int: ...

    async def insert_edge(
        self,
        *,
        parent_id: str,
        entity_key: str,
        child_id: str,
        label: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Edge: ...

    async def update_edge(self, edge_id: str, values: Dict[str, Any]) -> Edge: ...

    async def delete_edge(self, edge_id: str) -> None: ...

    async def delete_outbound(self, parent_id: str) -> int: ...


def _sqlstate(exc: IntegrityError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _translate_integrity_error(
    exc: IntegrityError, parent_id: str, entity_key: str, child_id: str
) -> Optional[Exception]:
    """Map a constraint failure on diagram_blocks to the engine's errors, or None."""
    sqlstate = _sqlstate(exc)
    message = str(exc.orig)

    if sqlstate == FOREIGN_KEY_SQLSTATE or "FOREIGN KEY constraint failed" in message:
        return NotFoundError(
            f'Diagram with ID "{parent_id}" or "{child_id}" not found'
        )
    if (
        sqlstate == UNIQUE_SQLSTATE
        or UNIQUE_INDEX in message
        or "UNIQUE constraint failed" in message
    ):
        return ConflictError(
            f'Entity "{entity_key}" already has a block in diagram "{parent_id}"'
        )
    return None


def _to_edge(row: DiagramBlock) -> Edge:
    return Edge(
        id=row.id,
        parent_diagram_id=row.parent_diagram_id,
        parent_entity_key=row.parent_entity_key,
        child_diagram_id=row.child_diagram_id,
        label=row.label,
        created_by=row.created_by,
        created_at=row.created_at,
    )


class SqlAlchemyBlockStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def diagram_exists(self, diagram_id: str) -> bool:
        result = await self.session.execute(
            select(Diagram.id).where(Diagram.id == diagram_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_diagram_source(self, diagram_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(Diagram.mermaid_source).where(Diagram.id == diagram_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_edge(self, edge_id: str) -> Optional[Edge]:
        row = await self.session.get(DiagramBlock, edge_id)
        return _to_edge(row) if row else None

    async def find_edge_by_entity_key(self, parent_id: str, entity_key: str) -> Optional[Edge]:
        result = await self.session.execute(
            select(DiagramBlock)
            .where(
                DiagramBlock.parent_diagram_id == parent_id,
                DiagramBlock.parent_entity_key == entity_key,
            )
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_edge(row) if row else None

    async def first_inbound_edge(self, child_id: str) -> Optional[Edge]:
        # Oldest block wins so breadcrumbs stay stable between requests
        result = await self.session.execute(
            select(DiagramBlock)
            .where(DiagramBlock.child_diagram_id == child_id)
            .order_by(DiagramBlock.created_at.asc(), DiagramBlock.id.asc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_edge(row) if row else None

    async def list_outbound(self, parent_id: str) -> List[Edge]:
        result = await self.session.execute(
            select(DiagramBlock)
            .where(DiagramBlock.parent_diagram_id == parent_id)
            .order_by(DiagramBlock.created_at.desc(), DiagramBlock.id.asc())
        )
        return [_to_edge(row) for row in result.scalars()]

    async def list_inbound(self, child_id: str) -> List[Edge]:
        result = await self.session.execute(
            select(DiagramBlock)
            .where(DiagramBlock.child_diagram_id == child_id)
            .order_by(DiagramBlock.created_at.desc(), DiagramBlock.id.asc())
        )
        return [_to_edge(row) for row in result.scalars()]

    async def count_outbound(self, parent_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DiagramBlock)
            .where(DiagramBlock.parent_diagram_id == parent_id)
        )
        return int(result.scalar_one())

    async def insert_edge(
        self,
        *,
        parent_id: str,
        entity_key: str,
        child_id: str,
        label: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Edge:
        row = DiagramBlock(
            parent_diagram_id=parent_id,
            parent_entity_key=entity_key,
            child_diagram_id=child_id,
            label=label,
            created_by=created_by,
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # a concurrent writer got past the pre-checks first
            translated = _translate_integrity_error(e, parent_id, entity_key, child_id)
            if translated is None:
                raise
            raise translated from e
        await self.session.refresh(row)
        return _to_edge(row)

    async def update_edge(self, edge_id: str, values: Dict[str, Any]) -> Edge:
        row = await self.session.get(DiagramBlock, edge_id)
        if row is None:
            raise NotFoundError(f'Block with ID "{edge_id}" not found')
        for key, value in values.items():
            setattr(row, key, value)
        keys = (row.parent_diagram_id, row.parent_entity_key, row.child_diagram_id)
        try:
            await self.session.flush()
        except IntegrityError as e:
            translated = _translate_integrity_error(e, *keys)
            if translated is None:
                raise
            raise translated from e
        await self.session.refresh(row)
        return _to_edge(row)

    async def delete_edge(self, edge_id: str) -> None:
        await self.session.execute(
            delete(DiagramBlock)
            .where(DiagramBlock.id == edge_id)
            .execution_options(synchronize_session=False)
        )

    async def delete_outbound(self, parent_id: str) -> int:
        result = await self.session.execute(
            delete(DiagramBlock)
            .where(DiagramBlock.parent_diagram_id == parent_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
