from __future__ import annotations

import uuid as _uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import CHAR, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _uuid_pk() -> _uuid.UUID:  # pragma: no cover
    return _uuid.uuid4()


class GUID(TypeDecorator):
    """Platform-independent GUID/UUID type.

    Uses PostgreSQL's UUID type, otherwise stores as CHAR(36).
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))  # type: ignore[attr-defined]
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):  # type: ignore[override]
        if value is None:
            return value
        return _uuid.UUID(str(value))


_STAGES = "'validating','generating_image','uploading_image','uploading_metadata','minting','succeeded','failed'"


class Run(Base):
    __tablename__ = "runs"

    id: Mapped[_uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_uuid_pk)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str] = mapped_column(String, nullable=False)
    image_cid: Mapped[str | None] = mapped_column(String)
    image_url: Mapped[str | None] = mapped_column(Text)
    metadata_cid: Mapped[str | None] = mapped_column(String)
    token_uri: Mapped[str | None] = mapped_column(Text)
    tx_hash: Mapped[str | None] = mapped_column(String)
    failed_stage: Mapped[str | None] = mapped_column(String)
    error_code: Mapped[str | None] = mapped_column(String)
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(f"stage in ({_STAGES})", name="runs_stage_check"),
        Index("runs_updated_idx", "updated_at"),
        Index("runs_stage_idx", "stage"),
    )


class Event(Base):
    __tablename__ = "events"

    id: Mapped[_uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_uuid_pk)
    run_id: Mapped[_uuid.UUID] = mapped_column(GUID(), ForeignKey("runs.id", ondelete="CASCADE"), nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stage: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    level: Mapped[str] = mapped_column(String, nullable=False, default="info")
    payload_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    run: Mapped[Run] = relationship("Run", backref="events")

    __table_args__ = (
        CheckConstraint("level in ('debug','info','warn','error')", name="events_level_check"),
        Index("events_run_seq_idx", "run_id", "seq"),
    )
