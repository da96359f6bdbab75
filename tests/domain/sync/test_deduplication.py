from __future__ import annotations

from unisync.domain.model import (
    CanonicalEntity,
    Connection,
    ObjectType,
    Provider,
    RemoteSubEntity,
    Vertical,
)
from unisync.domain.sync import CanonicalIngestionPipeline, CrossEntityDeduplicator, MapperRegistry
from tests.helpers.sync import (
    CONNECTION_ID,
    FakeSyncUnitOfWork,
    make_canonical,
    permission_mapper,
)

CONNECTION = Connection(
    connection_id=CONNECTION_ID,
    provider=Provider.GOOGLEDRIVE,
    vertical=Vertical.FILESTORAGE,
)


def _deduplicator(uow: FakeSyncUnitOfWork) -> CrossEntityDeduplicator:
    registry = MapperRegistry(
        {(Provider.GOOGLEDRIVE, Vertical.FILESTORAGE, ObjectType.PERMISSION): permission_mapper}
    )
    return CrossEntityDeduplicator(CanonicalIngestionPipeline(unit_of_work=uow, mappers=registry))


def _with_permissions(remote_id: str, *permissions: tuple[str, str | None]) -> CanonicalEntity:
    entity = make_canonical(remote_id)
    entity.sub_entities = [
        RemoteSubEntity(remote_id=perm_id, payload={"id": perm_id, "role": role})
        for perm_id, role in permissions
    ]
    return entity


def test_shared_sub_entity_is_stored_once_and_referenced_by_all() -> None:
    uow = FakeSyncUnitOfWork()
    first = _with_permissions("a", ("p1", "reader"), ("p2", "owner"))
    second = _with_permissions("b", ("p1", "reader"))

    _deduplicator(uow).dedupe_and_relink(
        [first, second], connection=CONNECTION, sub_object_type=ObjectType.PERMISSION
    )

    p1 = uow.sub_entities.by_remote_id("p1")
    p2 = uow.sub_entities.by_remote_id("p2")
    assert len(uow.sub_entities.rows) == 2
    assert uow.sub_entities.upserts == 2
    assert first.sub_entity_ids == [p1.internal_id, p2.internal_id]
    assert second.sub_entity_ids == [p1.internal_id]


def test_last_payload_seen_wins() -> None:
    uow = FakeSyncUnitOfWork()
    first = _with_permissions("a", ("p1", "reader"))
    second = _with_permissions("b", ("p1", "writer"))

    _deduplicator(uow).dedupe_and_relink(
        [first, second], connection=CONNECTION, sub_object_type=ObjectType.PERMISSION
    )

    assert uow.sub_entities.by_remote_id("p1").attributes == {"roles": ["writer"]}


def test_repeated_reference_within_one_entity_is_collapsed() -> None:
    uow = FakeSyncUnitOfWork()
    entity = _with_permissions("a", ("p1", "reader"), ("p1", "reader"))

    _deduplicator(uow).dedupe_and_relink(
        [entity], connection=CONNECTION, sub_object_type=ObjectType.PERMISSION
    )

    assert entity.sub_entity_ids == [uow.sub_entities.by_remote_id("p1").internal_id]


def test_rejected_sub_entities_are_dropped_from_references() -> None:
    uow = FakeSyncUnitOfWork()
    entity = _with_permissions("a", ("p1", None), ("p2", "reader"))

    _deduplicator(uow).dedupe_and_relink(
        [entity], connection=CONNECTION, sub_object_type=ObjectType.PERMISSION
    )

    assert entity.sub_entity_ids == [uow.sub_entities.by_remote_id("p2").internal_id]


def test_entities_without_sub_entities_skip_ingestion() -> None:
    uow = FakeSyncUnitOfWork()
    deduplicator = CrossEntityDeduplicator(
        CanonicalIngestionPipeline(unit_of_work=uow, mappers=MapperRegistry())
    )
    entities = [make_canonical("a"), make_canonical("b")]

    result = deduplicator.dedupe_and_relink(
        entities, connection=CONNECTION, sub_object_type=ObjectType.PERMISSION
    )

    assert result is entities
    assert uow.commits == 0
    assert all(entity.sub_entity_ids == [] for entity in entities)
