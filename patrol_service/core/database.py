# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""SQLAlchemy engine singleton and table definitions."""
from sqlalchemy import (
    Column, Date, DateTime, ForeignKey, Integer, MetaData, String, Table, Text,
    Time, Boolean, Index, create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from patrol_service.core.config import settings

metadata = MetaData()

incidents = Table(
    "incidents", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(500), nullable=False),
    Column("description", Text),
    Column("location", String(500)),
    Column("status", String(32), nullable=False),
    Column("reviewed_by", String(255)),
    # Set once the first patrol group is dispatched; never cleared.
    Column("dispatched", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

staff_members = Table(
    "staff_members", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("display_name", String(255), nullable=False),
    Column("contact_number", String(64)),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

patrol_groups = Table(
    "patrol_groups", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("incident_id", Integer, ForeignKey("incidents.id"), nullable=False),
    Column("patrol_date", Date, nullable=False),
    Column("patrol_time", Time, nullable=False),
    Column("status", String(32), nullable=False),
    Column("notes", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_patrol_groups_date_status", "patrol_date", "status"),
    Index("ix_patrol_groups_incident", "incident_id"),
)

patrol_group_staff = Table(
    "patrol_group_staff", metadata,
    Column("group_id", Integer, ForeignKey("patrol_groups.id", ondelete="CASCADE"),
           primary_key=True),
    Column("staff_id", Integer, ForeignKey("staff_members.id"), primary_key=True),
    Index("ix_patrol_group_staff_staff", "staff_id"),
)

patrol_group_events = Table(
    "patrol_group_events", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("group_id", Integer, ForeignKey("patrol_groups.id", ondelete="CASCADE"),
           nullable=False),
    Column("event_type", String(64), nullable=False),
    Column("detail", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every thread sees the same in-memory database.
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.POOL_SIZE,
        max_overflow=settings.MAX_OVERFLOW,
        pool_recycle=settings.POOL_RECYCLE,
    )


def init_schema(bind: Engine) -> None:
    metadata.create_all(bind)


engine = build_engine(settings.DATABASE_URL)
