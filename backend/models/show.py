from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Show(Base):
    __tablename__ = "shows"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Spot pricing per placement type. NULL means the show has no rate for that type.
    pre_roll_rate = Column(Float, nullable=True)
    mid_roll_rate = Column(Float, nullable=True)
    post_roll_rate = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("pre_roll_rate IS NULL OR pre_roll_rate >= 0", name="ck_shows_pre_roll_rate"),
        CheckConstraint("mid_roll_rate IS NULL OR mid_roll_rate >= 0", name="ck_shows_mid_roll_rate"),
        CheckConstraint("post_roll_rate IS NULL OR post_roll_rate >= 0", name="ck_shows_post_roll_rate"),
    )
