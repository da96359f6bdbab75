"""Reusable fakes and builders for sync engine tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from unisync.domain.model import (
    CanonicalEntity,
    CanonicalSubEntity,
    ObjectType,
    RemoteEntity,
    RemoteSubEntity,
)
from unisync.domain.ports import EntityPage, SyncRepositories
from unisync.domain.sync import EntityNotFoundError, RecordMappingError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from types import TracebackType
    from uuid import UUID

    from unisync.domain.model import Payload
    from unisync.domain.ports import EntityQuery

CONNECTION_ID = "conn-1"
T0 = datetime(2024, 3, 1, 12, tzinfo=UTC)


def make_remote(
    remote_id: str,
    parent: str | None = None,
    *,
    name: str | None = None,
    modified_at: datetime | None = None,
    permissions: Iterable[tuple[str, str]] = (),
    **payload: Any,
) -> RemoteEntity:
    """Build a remote folder; ``permissions`` are ``(permission id, role)`` pairs."""

    folder_name = name or remote_id.upper()
    return RemoteEntity(
        remote_id=remote_id,
        name=folder_name,
        remote_parent_id=parent,
        modified_at=modified_at or T0,
        sub_entities=tuple(
            RemoteSubEntity(remote_id=perm_id, payload={"id": perm_id, "role": role})
            for perm_id, role in permissions
        ),
        payload={"id": remote_id, "name": folder_name, **payload},
    )


def make_canonical(
    remote_id: str,
    *,
    parent: CanonicalEntity | None = None,
    connection_id: str = CONNECTION_ID,
) -> CanonicalEntity:
    return CanonicalEntity(
        remote_id=remote_id,
        connection_id=connection_id,
        object_type=ObjectType.FOLDER,
        name=remote_id.upper(),
        internal_parent_id=parent.internal_id if parent is not None else None,
        remote_parent_id=parent.remote_id if parent is not None else None,
    )


def folder_mapper(payload: Payload) -> dict[str, Any]:
    if payload.get("reject"):
        raise RecordMappingError(f"rejected {payload.get('id')}")
    return {"name": payload["name"]}


def permission_mapper(payload: Payload) -> dict[str, Any]:
    role = payload.get("role")
    if role is None:
        raise RecordMappingError(f"permission {payload.get('id')} has no role")
    return {"roles": [role]}


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FlakyOperation[T]:
    """Remote operation raising the queued errors before returning ``result``."""

    def __init__(self, failures: Iterable[BaseException], result: T) -> None:
        self._failures = list(failures)
        self._result = result
        self.calls = 0

    async def __call__(self) -> T:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._result


class FakeProvider:
    """In-memory provider serving ``entities`` in pages of ``page_size``.

    Child listings select entities by remote parent id; flat listings select by
    ``modified_since``. ``catalog`` holds extra entities only reachable through
    ``get_entity`` (ancestors outside the listed set).
    """

    def __init__(
        self,
        entities: Iterable[RemoteEntity] = (),
        *,
        containers: Iterable[str] = ("root",),
        catalog: Iterable[RemoteEntity] = (),
        page_size: int = 2,
        list_errors: Iterable[BaseException] = (),
        get_errors: Mapping[str, BaseException] | None = None,
    ) -> None:
        self.entities = list(entities)
        self.containers = list(containers)
        self.catalog = {entity.remote_id: entity for entity in catalog}
        self.page_size = page_size
        self.list_errors = list(list_errors)
        self.get_errors = dict(get_errors or {})
        self.queries: list[EntityQuery] = []
        self.list_calls = 0
        self.container_calls = 0
        self.get_calls: list[str] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self) -> FakeProvider:
        self.entered += 1
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> Literal[False]:
        self.exited += 1
        return False

    async def list_entities(
        self,
        query: EntityQuery,
        page_token: str | None = None,
    ) -> EntityPage:
        self.list_calls += 1
        self.queries.append(query)
        if self.list_errors:
            raise self.list_errors.pop(0)

        if query.parent_id is not None:
            matching = [e for e in self.entities if e.remote_parent_id == query.parent_id]
        else:
            since = query.modified_since
            matching = [
                e
                for e in self.entities
                if since is None or (e.modified_at is not None and e.modified_at >= since)
            ]

        offset = int(page_token) if page_token else 0
        end = offset + self.page_size
        return EntityPage(
            entities=matching[offset:end],
            next_page_token=str(end) if end < len(matching) else None,
        )

    async def list_containers(self) -> list[str]:
        self.container_calls += 1
        # yield like a network call so concurrent runs interleave
        await asyncio.sleep(0)
        return list(self.containers)

    async def get_entity(self, remote_id: str) -> RemoteEntity | None:
        self.get_calls.append(remote_id)
        error = self.get_errors.get(remote_id)
        if error is not None:
            raise error
        for entity in self.entities:
            if entity.remote_id == remote_id:
                return entity
        if remote_id in self.catalog:
            return self.catalog[remote_id]
        raise EntityNotFoundError(remote_id)


class InMemoryEntityRepository:
    """Dict-backed canonical entity store that enforces parent references."""

    def __init__(self, initial: Iterable[CanonicalEntity] = ()) -> None:
        self.rows: dict[UUID, CanonicalEntity] = {}
        for entity in initial:
            self.upsert(entity)

    def find_internal_id(
        self,
        remote_id: str,
        connection_id: str,
        object_type: ObjectType,
    ) -> UUID | None:
        for row in self.rows.values():
            if row.key == (connection_id, object_type, remote_id):
                return row.internal_id
        return None

    def find_parent_id(self, internal_id: UUID) -> UUID | None:
        row = self.rows.get(internal_id)
        return row.internal_parent_id if row is not None else None

    def get(self, internal_id: UUID) -> CanonicalEntity | None:
        return self.rows.get(internal_id)

    def upsert(self, entity: CanonicalEntity) -> UUID:
        parent_id = entity.internal_parent_id
        if parent_id is not None and parent_id not in self.rows:
            raise ValueError(f"{entity.remote_id} references unknown parent {parent_id}")
        existing = self.find_internal_id(entity.remote_id, entity.connection_id, entity.object_type)
        stored_id = existing if existing is not None else entity.internal_id
        self.rows[stored_id] = replace(
            entity,
            internal_id=stored_id,
            sub_entity_ids=list(entity.sub_entity_ids),
        )
        return stored_id

    def by_remote_id(self, remote_id: str) -> CanonicalEntity:
        return next(row for row in self.rows.values() if row.remote_id == remote_id)


class InMemorySubEntityRepository:
    def __init__(self) -> None:
        self.rows: dict[UUID, CanonicalSubEntity] = {}
        self.upserts = 0

    def find_internal_id(
        self,
        remote_id: str,
        connection_id: str,
        object_type: ObjectType,
    ) -> UUID | None:
        for row in self.rows.values():
            if row.key == (connection_id, object_type, remote_id):
                return row.internal_id
        return None

    def upsert(self, sub_entity: CanonicalSubEntity) -> UUID:
        self.upserts += 1
        existing = self.find_internal_id(
            sub_entity.remote_id, sub_entity.connection_id, sub_entity.object_type
        )
        stored_id = existing if existing is not None else sub_entity.internal_id
        self.rows[stored_id] = replace(sub_entity, internal_id=stored_id)
        return stored_id

    def by_remote_id(self, remote_id: str) -> CanonicalSubEntity:
        return next(row for row in self.rows.values() if row.remote_id == remote_id)


class InMemoryWatermarkRepository:
    def __init__(self) -> None:
        self.values: dict[tuple[str, ObjectType], datetime] = {}

    def get(self, connection_id: str, object_type: ObjectType) -> datetime | None:
        return self.values.get((connection_id, object_type))

    def set(self, connection_id: str, object_type: ObjectType, timestamp: datetime) -> None:
        self.values[(connection_id, object_type)] = timestamp


class FakeSyncUnitOfWork:
    """Unit of work over in-memory repositories; counts commits and rollbacks."""

    def __init__(self, repositories: SyncRepositories | None = None) -> None:
        self._repositories = repositories or SyncRepositories(
            entities=InMemoryEntityRepository(),
            sub_entities=InMemorySubEntityRepository(),
            watermarks=InMemoryWatermarkRepository(),
        )
        self.commits = 0
        self.rollbacks = 0

    @property
    def repositories(self) -> SyncRepositories:
        return self._repositories

    @property
    def entities(self) -> InMemoryEntityRepository:
        repository = self._repositories.entities
        if not isinstance(repository, InMemoryEntityRepository):
            raise TypeError("entities repository is not in-memory")
        return repository

    @property
    def sub_entities(self) -> InMemorySubEntityRepository:
        repository = self._repositories.sub_entities
        if not isinstance(repository, InMemorySubEntityRepository):
            raise TypeError("sub-entity repository is not in-memory")
        return repository

    @property
    def watermarks(self) -> InMemoryWatermarkRepository:
        repository = self._repositories.watermarks
        if not isinstance(repository, InMemoryWatermarkRepository):
            raise TypeError("watermark repository is not in-memory")
        return repository

    def __enter__(self) -> FakeSyncUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1
