from __future__ import annotations

import uuid

from sqlalchemy import Column, Date, DateTime, Float, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


def make_slot_key(show_id, air_date, placement_type: str, episode_id) -> str:
    return f"{show_id}:{air_date.isoformat()}:{placement_type}:{episode_id or '-'}"


class ScheduledSpot(Base):
    __tablename__ = "scheduled_spots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    episode_id = Column(Uuid(as_uuid=True), nullable=True)
    episode_title = Column(Text, nullable=True)
    episode_number = Column(Integer, nullable=True)
    air_date = Column(Date, nullable=False)
    placement_type = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    campaign_id = Column(Uuid(as_uuid=True), nullable=True)
    idempotency_key = Column(Text, nullable=False, index=True)
    # (show, date, placement type, episode); the unique index is what makes double-booking impossible.
    slot_key = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (UniqueConstraint("slot_key", name="uq_scheduled_spots_slot_key"),)
