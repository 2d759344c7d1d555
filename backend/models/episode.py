from __future__ import annotations

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Episode(Base):
    __tablename__ = "episodes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid(as_uuid=True), ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    air_date = Column(Date, nullable=False)
    title = Column(Text, nullable=True)
    episode_number = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="SCHEDULED")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_episodes_show_air_date", "show_id", "air_date"),)
