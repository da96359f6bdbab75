"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select, update

from unisync.adapters.sqlalchemy.mappings import (
    canonical_entity_sub_entity_table,
    canonical_entity_table,
    canonical_sub_entity_table,
    sync_watermark_table,
)
from unisync.domain.model import CanonicalEntity, CanonicalSubEntity

if TYPE_CHECKING:
    import uuid
    from collections.abc import Mapping
    from datetime import datetime

    from sqlalchemy import Table
    from sqlalchemy.orm import Session

    from unisync.domain.model import CanonicalRecord, ObjectType


class _SqlAlchemyRecordRepository:
    """Shared lookups for tables keyed by ``(connection_id, object_type, remote_id)``."""

    table: Table

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_internal_id(
        self,
        remote_id: str,
        connection_id: str,
        object_type: ObjectType,
    ) -> uuid.UUID | None:
        stmt = (
            select(self.table.c.id)
            .where(self.table.c.connection_id == connection_id)
            .where(self.table.c.object_type == object_type)
            .where(self.table.c.remote_id == remote_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _write(self, record: CanonicalRecord, values: dict[str, Any]) -> uuid.UUID:
        existing = self.find_internal_id(record.remote_id, record.connection_id, record.object_type)
        if existing is None:
            self.session.execute(insert(self.table).values(id=record.internal_id, **values))
            return record.internal_id
        self.session.execute(update(self.table).where(self.table.c.id == existing).values(**values))
        return existing

    @staticmethod
    def _common_values(record: CanonicalRecord) -> dict[str, Any]:
        return {
            "connection_id": record.connection_id,
            "object_type": record.object_type,
            "remote_id": record.remote_id,
            "attributes": dict(record.attributes),
            "field_mappings": dict(record.field_mappings),
            "payload": dict(record.payload),
        }


class SqlAlchemyCanonicalEntityRepository(_SqlAlchemyRecordRepository):
    table = canonical_entity_table

    def find_parent_id(self, internal_id: uuid.UUID) -> uuid.UUID | None:
        stmt = select(self.table.c.parent_id).where(self.table.c.id == internal_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get(self, internal_id: uuid.UUID) -> CanonicalEntity | None:
        stmt = select(self.table).where(self.table.c.id == internal_id)
        row = self.session.execute(stmt).mappings().one_or_none()
        if row is None:
            return None
        return self._to_entity(row)

    def list_for_connection(
        self,
        connection_id: str,
        object_type: ObjectType,
    ) -> list[CanonicalEntity]:
        stmt = (
            select(self.table)
            .where(self.table.c.connection_id == connection_id)
            .where(self.table.c.object_type == object_type)
            .order_by(self.table.c.depth, self.table.c.name)
        )
        return [self._to_entity(row) for row in self.session.execute(stmt).mappings()]

    def upsert(self, entity: CanonicalEntity) -> uuid.UUID:
        values = self._common_values(entity) | {
            "parent_id": entity.internal_parent_id,
            "remote_parent_id": entity.remote_parent_id,
            "name": entity.name,
            "depth": entity.depth,
            "remote_modified_at": entity.modified_at,
        }
        stored_id = self._write(entity, values)

        links = canonical_entity_sub_entity_table
        self.session.execute(delete(links).where(links.c.entity_id == stored_id))
        if entity.sub_entity_ids:
            self.session.execute(
                insert(links),
                [
                    {"entity_id": stored_id, "sub_entity_id": sub_id, "position": position}
                    for position, sub_id in enumerate(entity.sub_entity_ids)
                ],
            )
        return stored_id

    def _sub_entity_ids(self, internal_id: uuid.UUID) -> list[uuid.UUID]:
        links = canonical_entity_sub_entity_table
        stmt = (
            select(links.c.sub_entity_id)
            .where(links.c.entity_id == internal_id)
            .order_by(links.c.position)
        )
        return list(self.session.execute(stmt).scalars())

    def _to_entity(self, row: Mapping[str, Any]) -> CanonicalEntity:
        return CanonicalEntity(
            internal_id=row["id"],
            internal_parent_id=row["parent_id"],
            remote_id=row["remote_id"],
            remote_parent_id=row["remote_parent_id"],
            connection_id=row["connection_id"],
            object_type=row["object_type"],
            name=row["name"],
            depth=row["depth"],
            modified_at=row["remote_modified_at"],
            attributes=dict(row["attributes"]),
            field_mappings=dict(row["field_mappings"]),
            payload=dict(row["payload"]),
            sub_entity_ids=self._sub_entity_ids(row["id"]),
        )


class SqlAlchemyCanonicalSubEntityRepository(_SqlAlchemyRecordRepository):
    table = canonical_sub_entity_table

    def get(self, internal_id: uuid.UUID) -> CanonicalSubEntity | None:
        stmt = select(self.table).where(self.table.c.id == internal_id)
        row = self.session.execute(stmt).mappings().one_or_none()
        if row is None:
            return None
        return CanonicalSubEntity(
            internal_id=row["id"],
            remote_id=row["remote_id"],
            connection_id=row["connection_id"],
            object_type=row["object_type"],
            attributes=dict(row["attributes"]),
            field_mappings=dict(row["field_mappings"]),
            payload=dict(row["payload"]),
        )

    def upsert(self, sub_entity: CanonicalSubEntity) -> uuid.UUID:
        return self._write(sub_entity, self._common_values(sub_entity))


class SqlAlchemyWatermarkRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, connection_id: str, object_type: ObjectType) -> datetime | None:
        table = sync_watermark_table
        stmt = (
            select(table.c.last_synced_at)
            .where(table.c.connection_id == connection_id)
            .where(table.c.object_type == object_type)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def set(self, connection_id: str, object_type: ObjectType, timestamp: datetime) -> None:
        table = sync_watermark_table
        if self.get(connection_id, object_type) is None:
            self.session.execute(
                insert(table).values(
                    connection_id=connection_id,
                    object_type=object_type,
                    last_synced_at=timestamp,
                )
            )
            return
        self.session.execute(
            update(table)
            .where(table.c.connection_id == connection_id)
            .where(table.c.object_type == object_type)
            .values(last_synced_at=timestamp)
        )
