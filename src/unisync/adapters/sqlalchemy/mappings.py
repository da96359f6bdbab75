"""SQLAlchemy Core tables for canonical records and sync watermarks."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)

from unisync.domain.model import ObjectType

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

canonical_entity_table = Table(
    "canonical_entity",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("connection_id", String, nullable=False),
    Column("object_type", Enum(ObjectType, native_enum=False), nullable=False),
    Column("remote_id", String, nullable=False),
    Column("remote_parent_id", String, nullable=True),
    Column(
        "parent_id",
        UUIDColumnType,
        ForeignKey("canonical_entity.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("name", String, nullable=False),
    Column("depth", Integer, nullable=True),
    Column("remote_modified_at", UTCDateTime(), nullable=True),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("field_mappings", JSON, nullable=False, default=dict),
    Column("payload", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False, default=lambda: datetime.now(UTC)),
    Column(
        "modified_at",
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    ),
    UniqueConstraint("connection_id", "object_type", "remote_id"),
    Index("ix_canonical_entity_parent_id", "parent_id"),
)

canonical_sub_entity_table = Table(
    "canonical_sub_entity",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("connection_id", String, nullable=False),
    Column("object_type", Enum(ObjectType, native_enum=False), nullable=False),
    Column("remote_id", String, nullable=False),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("field_mappings", JSON, nullable=False, default=dict),
    Column("payload", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False, default=lambda: datetime.now(UTC)),
    Column(
        "modified_at",
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    ),
    UniqueConstraint("connection_id", "object_type", "remote_id"),
)

canonical_entity_sub_entity_table = Table(
    "canonical_entity_sub_entity",
    metadata,
    Column(
        "entity_id",
        UUIDColumnType,
        ForeignKey("canonical_entity.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "sub_entity_id",
        UUIDColumnType,
        ForeignKey("canonical_sub_entity.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("position", Integer, nullable=False, default=0),
)

sync_watermark_table = Table(
    "sync_watermark",
    metadata,
    Column("connection_id", String, primary_key=True),
    Column("object_type", Enum(ObjectType, native_enum=False), primary_key=True),
    Column("last_synced_at", UTCDateTime(), nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the canonical store."""

    log.info("Creating all tables")
    metadata.create_all(engine)
