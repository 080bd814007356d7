"""
Technique taxonomy models.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.src.curator.database.models.base import Base


class TaxonomyNode(Base):
    """One node of the 3-level technique tree (category, position, technique)."""

    __tablename__ = "taxonomy_nodes"
    __table_args__ = (CheckConstraint("level IN (1, 2, 3)", name="ck_taxonomy_level"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    level = Column(Integer, nullable=False)
    parent_id = Column(Integer, ForeignKey("taxonomy_nodes.id"), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    parent = relationship("TaxonomyNode", remote_side=[id], back_populates="children")
    children = relationship("TaxonomyNode", back_populates="parent")
    video_tags = relationship("VideoTechniqueTag", back_populates="taxonomy_node")
