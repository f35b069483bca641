import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Diagram(Base):
    """Diagram record. Owned by the CRUD layer; the block engine only reads it."""

    __tablename__ = "diagrams"

    id = Column(String(64), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default="erDiagram")
    mermaid_source = Column(Text, nullable=False, default="")
    theme = Column(Text, default="default")
    created_by = Column(Text)
    metadata_ = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class DiagramBlock(Base):
    """Entity `parent_entity_key` in `parent_diagram_id` links to `child_diagram_id`."""

    __tablename__ = "diagram_blocks"

    id = Column(String(64), primary_key=True, default=_new_id)
    parent_diagram_id = Column(
        String(64), ForeignKey("diagrams.id", ondelete="CASCADE"), nullable=False
    )
    parent_entity_key = Column(Text, nullable=False)
    child_diagram_id = Column(
        String(64), ForeignKey("diagrams.id", ondelete="CASCADE"), nullable=False
    )
    label = Column(Text)
    created_by = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("diagram_blocks_parent_diagram_id_idx", "parent_diagram_id"),
        Index("diagram_blocks_child_diagram_id_idx", "child_diagram_id"),
        # Storage backstop for one block per entity key per parent
        Index(
            "diagram_blocks_parent_entity_unique_idx",
            "parent_diagram_id",
            "parent_entity_key",
            unique=True,
        ),
    )
