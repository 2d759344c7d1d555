from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base, JSONDocument


class BulkCommitRecord(Base):
    __tablename__ = "bulk_commit_records"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    idempotency_key = Column(Text, nullable=False)
    correlation_id = Column(Text, nullable=True)
    result = Column(JSONDocument, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (UniqueConstraint("idempotency_key", name="uq_bulk_commit_records_key"),)
