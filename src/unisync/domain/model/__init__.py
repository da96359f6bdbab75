"""Public domain model surface."""

from __future__ import annotations

from unisync.domain.model.connection import Connection, FieldMapping, SyncWatermark
from unisync.domain.model.entity import (
    CanonicalEntity,
    CanonicalRecord,
    CanonicalSubEntity,
    Payload,
    RemoteEntity,
    RemoteSubEntity,
    new_id,
)
from unisync.domain.model.enums import ObjectType, Provider, SyncMode, SyncState, Vertical

__all__ = [  # noqa: RUF022
    # remote
    "RemoteEntity",
    "RemoteSubEntity",
    "Payload",
    # canonical
    "CanonicalRecord",
    "CanonicalEntity",
    "CanonicalSubEntity",
    "new_id",
    # connections
    "Connection",
    "FieldMapping",
    "SyncWatermark",
    # enums
    "ObjectType",
    "Provider",
    "SyncMode",
    "SyncState",
    "Vertical",
]
