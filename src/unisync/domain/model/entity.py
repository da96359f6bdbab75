"""
Remote and canonical entity shapes.

Remote entities are what a provider hands us: immutable, keyed by the
provider's own ids. Canonical records are what we persist: keyed by a locally
minted ``internal_id`` that stays stable for a ``(connection_id, remote_id)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from unisync.domain.model.enums import ObjectType


type Payload = Mapping[str, Any]


def new_id() -> UUID:
    return uuid4()


@dataclass(frozen=True, slots=True)
class RemoteSubEntity:
    """Sub-entity embedded in one or more remote entities (e.g. an ACL entry)."""

    remote_id: str
    payload: Payload = field(default_factory=dict["str", "Any"])


@dataclass(frozen=True, slots=True)
class RemoteEntity:
    remote_id: str
    name: str
    remote_parent_id: str | None = None
    modified_at: datetime | None = None
    sub_entities: tuple[RemoteSubEntity, ...] = ()
    payload: Payload = field(default_factory=dict["str", "Any"])
    container_id: str | None = None
    # set by full-scan traversal only
    depth: int | None = None

    def annotated(self, *, depth: int, container_id: str | None) -> RemoteEntity:
        return replace(self, depth=depth, container_id=self.container_id or container_id)


@dataclass(eq=False, kw_only=True)
class CanonicalRecord:
    """Fields shared by every persisted, provider-agnostic record."""

    remote_id: str
    connection_id: str
    object_type: ObjectType
    internal_id: UUID = field(default_factory=new_id)
    attributes: dict[str, Any] = field(default_factory=dict[str, Any])
    field_mappings: dict[str, Any] = field(default_factory=dict[str, Any])
    payload: dict[str, Any] = field(default_factory=dict[str, Any])

    @property
    def key(self) -> tuple[str, ObjectType, str]:
        return (self.connection_id, self.object_type, self.remote_id)


@dataclass(eq=False, kw_only=True)
class CanonicalEntity(CanonicalRecord):
    """A placed node of the local forest.

    ``sub_entities`` holds the embedded remote sub-entities until deduplication
    rewrites them into ``sub_entity_ids``.
    """

    name: str
    internal_parent_id: UUID | None = None
    remote_parent_id: str | None = None
    modified_at: datetime | None = None
    depth: int | None = None
    sub_entities: list[RemoteSubEntity] = field(default_factory=list[RemoteSubEntity])
    sub_entity_ids: list[UUID] = field(default_factory=list[UUID])

    @property
    def is_root(self) -> bool:
        return self.internal_parent_id is None

    @classmethod
    def from_remote(
        cls,
        remote: RemoteEntity,
        *,
        internal_id: UUID,
        internal_parent_id: UUID | None,
        connection_id: str,
        object_type: ObjectType,
    ) -> CanonicalEntity:
        return cls(
            internal_id=internal_id,
            internal_parent_id=internal_parent_id,
            remote_id=remote.remote_id,
            remote_parent_id=remote.remote_parent_id,
            connection_id=connection_id,
            object_type=object_type,
            name=remote.name,
            modified_at=remote.modified_at,
            depth=remote.depth,
            payload=dict(remote.payload),
            sub_entities=list(remote.sub_entities),
        )


@dataclass(eq=False, kw_only=True)
class CanonicalSubEntity(CanonicalRecord):
    """Stored once per connection however many entities reference it."""
