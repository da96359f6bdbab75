"""Ports for persisting canonical records and sync watermarks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from unisync.domain.model import CanonicalEntity, CanonicalSubEntity, ObjectType


@runtime_checkable
class CanonicalEntityRepository(Protocol):
    """Hierarchical canonical records keyed by ``(connection, type, remote id)``."""

    def find_internal_id(
        self,
        remote_id: str,
        connection_id: str,
        object_type: ObjectType,
    ) -> UUID | None: ...

    def find_parent_id(self, internal_id: UUID) -> UUID | None: ...

    def get(self, internal_id: UUID) -> CanonicalEntity | None: ...

    def upsert(self, entity: CanonicalEntity) -> UUID:
        """Insert or update ``entity`` and return the stored internal id."""
        ...


@runtime_checkable
class CanonicalSubEntityRepository(Protocol):
    def find_internal_id(
        self,
        remote_id: str,
        connection_id: str,
        object_type: ObjectType,
    ) -> UUID | None: ...

    def upsert(self, sub_entity: CanonicalSubEntity) -> UUID: ...


@runtime_checkable
class WatermarkRepository(Protocol):
    def get(self, connection_id: str, object_type: ObjectType) -> datetime | None: ...

    def set(self, connection_id: str, object_type: ObjectType, timestamp: datetime) -> None: ...
