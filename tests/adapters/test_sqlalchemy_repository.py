from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError

from unisync.adapters.sqlalchemy import SqlAlchemySyncUnitOfWork, StartupError
from unisync.adapters.sqlalchemy.repositories import SqlAlchemyCanonicalEntityRepository
from unisync.domain.model import CanonicalSubEntity, ObjectType
from tests.helpers.sync import CONNECTION_ID, make_canonical

if TYPE_CHECKING:
    from collections.abc import Callable

type UnitOfWorkFactory = Callable[[], SqlAlchemySyncUnitOfWork]


def _entity_repository(uow: SqlAlchemySyncUnitOfWork) -> SqlAlchemyCanonicalEntityRepository:
    repository = uow.repositories.entities
    assert isinstance(repository, SqlAlchemyCanonicalEntityRepository)
    return repository


def test_entity_round_trip_keeps_parent_and_sub_entity_links(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    parent = make_canonical("parent")
    child = make_canonical("child", parent=parent)
    child.depth = 1
    child.modified_at = datetime(2024, 3, 1, 12, tzinfo=UTC)
    child.attributes = {"name": "Child"}
    child.field_mappings = {"colour": "blue"}
    child.payload = {"id": "child"}
    permission = CanonicalSubEntity(
        remote_id="perm-1",
        connection_id=CONNECTION_ID,
        object_type=ObjectType.PERMISSION,
        attributes={"roles": ["reader"]},
    )

    with sqlite_unit_of_work() as uow:
        repositories = uow.repositories
        repositories.entities.upsert(parent)
        child.sub_entity_ids = [repositories.sub_entities.upsert(permission)]
        repositories.entities.upsert(child)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.entities.get(child.internal_id)

    assert stored is not None
    assert stored.internal_parent_id == parent.internal_id
    assert stored.remote_parent_id == "parent"
    assert stored.object_type is ObjectType.FOLDER
    assert stored.depth == 1
    assert stored.modified_at == datetime(2024, 3, 1, 12, tzinfo=UTC)
    assert stored.attributes == {"name": "Child"}
    assert stored.field_mappings == {"colour": "blue"}
    assert stored.sub_entity_ids == [permission.internal_id]


def test_upsert_is_keyed_by_connection_type_and_remote_id(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    original = make_canonical("folder")
    duplicate = make_canonical("folder")
    duplicate.name = "Renamed"

    with sqlite_unit_of_work() as uow:
        first_id = uow.repositories.entities.upsert(original)
        second_id = uow.repositories.entities.upsert(duplicate)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        entities = _entity_repository(uow).list_for_connection(CONNECTION_ID, ObjectType.FOLDER)

    assert first_id == second_id == original.internal_id
    assert [entity.name for entity in entities] == ["Renamed"]


def test_lookups_are_scoped_per_connection(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    mine = make_canonical("shared-id")
    theirs = make_canonical("shared-id", connection_id="other")

    with sqlite_unit_of_work() as uow:
        uow.repositories.entities.upsert(mine)
        uow.repositories.entities.upsert(theirs)
        uow.commit()

        entities = uow.repositories.entities
        assert entities.find_internal_id("shared-id", CONNECTION_ID, ObjectType.FOLDER) == (
            mine.internal_id
        )
        assert entities.find_internal_id("shared-id", "other", ObjectType.FOLDER) == (
            theirs.internal_id
        )
        assert entities.find_internal_id("shared-id", CONNECTION_ID, ObjectType.FILE) is None


def test_find_parent_id(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    parent = make_canonical("parent")
    child = make_canonical("child", parent=parent)

    with sqlite_unit_of_work() as uow:
        uow.repositories.entities.upsert(parent)
        uow.repositories.entities.upsert(child)
        uow.commit()

        assert uow.repositories.entities.find_parent_id(child.internal_id) == parent.internal_id
        assert uow.repositories.entities.find_parent_id(parent.internal_id) is None


def test_relinking_replaces_sub_entity_links(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    first = CanonicalSubEntity(
        remote_id="perm-1", connection_id=CONNECTION_ID, object_type=ObjectType.PERMISSION
    )
    second = CanonicalSubEntity(
        remote_id="perm-2", connection_id=CONNECTION_ID, object_type=ObjectType.PERMISSION
    )
    folder = make_canonical("folder")

    with sqlite_unit_of_work() as uow:
        repositories = uow.repositories
        folder.sub_entity_ids = [
            repositories.sub_entities.upsert(first),
            repositories.sub_entities.upsert(second),
        ]
        repositories.entities.upsert(folder)
        folder.sub_entity_ids = [second.internal_id]
        repositories.entities.upsert(folder)
        uow.commit()

        stored = repositories.entities.get(folder.internal_id)

    assert stored is not None
    assert stored.sub_entity_ids == [second.internal_id]


def test_dangling_parent_is_rejected(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    child = make_canonical("child", parent=make_canonical("never-stored"))

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.entities.upsert(child)
        uow.commit()


def test_watermarks_are_stored_in_utc(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    local = datetime(2024, 3, 1, 14, tzinfo=timezone(timedelta(hours=2)))

    with sqlite_unit_of_work() as uow:
        watermarks = uow.repositories.watermarks
        assert watermarks.get(CONNECTION_ID, ObjectType.FOLDER) is None
        watermarks.set(CONNECTION_ID, ObjectType.FOLDER, local)
        watermarks.set(CONNECTION_ID, ObjectType.FOLDER, local + timedelta(hours=1))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.watermarks.get(CONNECTION_ID, ObjectType.FOLDER)

    assert stored == datetime(2024, 3, 1, 13, tzinfo=UTC)
    assert stored is not None
    assert stored.tzinfo is not None


def test_rollback_discards_uncommitted_writes(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    folder = make_canonical("folder")

    with pytest.raises(RuntimeError), sqlite_unit_of_work() as uow:
        uow.repositories.entities.upsert(folder)
        raise RuntimeError("abort")

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.entities.get(folder.internal_id) is None


def test_repositories_require_an_open_unit_of_work(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    uow = sqlite_unit_of_work()

    with pytest.raises(StartupError):
        _ = uow.repositories
