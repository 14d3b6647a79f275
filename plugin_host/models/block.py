"""
Block Models

A BlockInstance is one block added somewhere; a BlockPosition places that
instance at a concrete (context, page type, subpage) coordinate with a region
and a weight. Positions are owned by their instance.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, LargeBinary, String

from plugin_host.database import Base
from plugin_host.utils.clock import utcnow


class BlockInstance(Base):
    __tablename__ = "block_instances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    block_name = Column(String(40), nullable=False, index=True)
    parent_context_id = Column(Integer, nullable=False, index=True)
    show_in_subcontexts = Column(Boolean, default=False, nullable=False)
    page_type_pattern = Column(String(64), nullable=False)
    subpage_pattern = Column(String(16), nullable=True)
    default_region = Column(String(16), nullable=False)
    default_weight = Column(Integer, default=0, nullable=False)

    # Opaque plugin-defined payload
    config_data = Column(LargeBinary, nullable=True)

    visible = Column(Boolean, default=True, nullable=False)

    time_created = Column(DateTime, default=utcnow, nullable=False)
    time_modified = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<BlockInstance(id={self.id}, block={self.block_name})>"


class BlockPosition(Base):
    __tablename__ = "block_positions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    block_instance_id = Column(Integer, ForeignKey("block_instances.id", ondelete="CASCADE"), nullable=False)
    context_id = Column(Integer, nullable=False)
    page_type = Column(String(64), nullable=False)
    subpage = Column(String(16), default="", nullable=False)
    visible = Column(Boolean, default=True, nullable=False)
    region = Column(String(16), nullable=False)
    weight = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index(
            "ix_block_positions_coordinate",
            "block_instance_id",
            "context_id",
            "page_type",
            "subpage",
            unique=True,
        ),
        Index("ix_block_positions_page", "context_id", "page_type", "region"),
    )

    def __repr__(self) -> str:
        return f"<BlockPosition(instance={self.block_instance_id}, region={self.region}, weight={self.weight})>"
