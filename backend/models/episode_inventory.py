from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


INVENTORY_STATUSES = ("OPEN", "HELD", "SOLD")


class EpisodeInventory(Base):
    """One sellable placement slot on an episode."""

    __tablename__ = "episode_inventory"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    episode_id = Column(Uuid(as_uuid=True), ForeignKey("episodes.id", ondelete="CASCADE"), nullable=False)
    placement_type = Column(String(20), nullable=False)
    status = Column(String(10), nullable=False, default="OPEN")
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("placement_type IN ('pre-roll', 'mid-roll', 'post-roll')", name="ck_episode_inventory_type"),
        CheckConstraint("status IN ('OPEN', 'HELD', 'SOLD')", name="ck_episode_inventory_status"),
        UniqueConstraint("episode_id", "placement_type", name="uq_episode_inventory_episode_type"),
    )
