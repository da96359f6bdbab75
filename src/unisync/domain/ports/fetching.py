"""Ports for fetching remote entities from an external provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from unisync.domain.model import RemoteEntity


@dataclass(frozen=True, slots=True)
class EntityQuery:
    """Provider-neutral listing filter.

    ``parent_id`` restricts the listing to direct children (full scans);
    ``modified_since`` selects a flat, unordered listing (incremental runs).
    """

    parent_id: str | None = None
    container_id: str | None = None
    modified_since: datetime | None = None
    page_size: int | None = None

    def children_of(self, parent_id: str, *, container_id: str | None) -> EntityQuery:
        return EntityQuery(
            parent_id=parent_id,
            container_id=container_id,
            page_size=self.page_size,
        )


@dataclass(slots=True)
class EntityPage:
    """One page of a cursor-based listing."""

    entities: list[RemoteEntity] = field(default_factory=list["RemoteEntity"])
    next_page_token: str | None = None


@runtime_checkable
class RemoteProvider(Protocol):
    """Capability surface the engine consumes from a provider connection."""

    async def list_entities(
        self,
        query: EntityQuery,
        page_token: str | None = None,
    ) -> EntityPage: ...

    async def list_containers(self) -> list[str]: ...

    async def get_entity(self, remote_id: str) -> RemoteEntity | None: ...


__all__ = ["EntityPage", "EntityQuery", "RemoteProvider"]
