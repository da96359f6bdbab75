"""Map provider records onto the canonical model and persist them idempotently."""

from __future__ import annotations

from collections.abc import Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Any, Protocol, overload, runtime_checkable

from pydantic import ValidationError

from unisync.domain.model import CanonicalEntity, CanonicalSubEntity

from .errors import MapperNotFoundError, RecordMappingError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from unisync.domain.model import (
        CanonicalRecord,
        FieldMapping,
        ObjectType,
        Payload,
        Provider,
        Vertical,
    )
    from unisync.domain.ports import SyncUnitOfWork

log = getLogger(__name__)

type Mapper = Callable[[Payload], dict[str, Any]]
type MapperKey = tuple[Provider, Vertical, ObjectType]


@runtime_checkable
class SourceRecord(Protocol):
    """Anything carrying a provider id and its raw payload."""

    @property
    def remote_id(self) -> str: ...

    @property
    def payload(self) -> Payload: ...


class MapperRegistry:
    """Pure payload-to-attributes functions keyed by provider, vertical and object type."""

    def __init__(self, mappers: Mapping[MapperKey, Mapper] | None = None) -> None:
        self._mappers: dict[MapperKey, Mapper] = dict(mappers or {})

    def register(
        self,
        provider: Provider,
        vertical: Vertical,
        object_type: ObjectType,
        mapper: Mapper,
    ) -> None:
        self._mappers[(provider, vertical, object_type)] = mapper

    def get(self, provider: Provider, vertical: Vertical, object_type: ObjectType) -> Mapper:
        mapper = self._mappers.get((provider, vertical, object_type))
        if mapper is None:
            raise MapperNotFoundError(provider, vertical, object_type)
        return mapper

    def __contains__(self, key: object) -> bool:
        return key in self._mappers


def project_fields(payload: Payload, mappings: Iterable[FieldMapping]) -> dict[str, Any]:
    """Copy ``payload[remote_attribute]`` into ``slug``; absent attributes map to None."""

    return {mapping.slug: payload.get(mapping.remote_attribute) for mapping in mappings}


class CanonicalIngestionPipeline:
    """Persist canonical entities and sub-entities through one open unit of work.

    Each record is committed on its own, so an interrupted run leaves every
    record ingested so far in place.
    """

    def __init__(self, *, unit_of_work: SyncUnitOfWork, mappers: MapperRegistry) -> None:
        self._uow = unit_of_work
        self._mappers = mappers

    @overload
    def ingest(
        self,
        records: SourceRecord,
        *,
        provider: Provider,
        connection_id: str,
        vertical: Vertical,
        object_type: ObjectType,
        custom_field_mappings: Sequence[FieldMapping] | None = None,
    ) -> CanonicalRecord | None: ...

    @overload
    def ingest(
        self,
        records: Sequence[SourceRecord],
        *,
        provider: Provider,
        connection_id: str,
        vertical: Vertical,
        object_type: ObjectType,
        custom_field_mappings: Sequence[FieldMapping] | None = None,
    ) -> list[CanonicalRecord]: ...

    def ingest(
        self,
        records: SourceRecord | Sequence[SourceRecord],
        *,
        provider: Provider,
        connection_id: str,
        vertical: Vertical,
        object_type: ObjectType,
        custom_field_mappings: Sequence[FieldMapping] | None = None,
    ) -> CanonicalRecord | list[CanonicalRecord] | None:
        mapper = self._mappers.get(provider, vertical, object_type)
        mappings = tuple(custom_field_mappings or ())

        if not isinstance(records, Sequence):
            return self._ingest_one(records, mapper, connection_id, object_type, mappings)

        ingested: list[CanonicalRecord] = []
        for record in records:
            canonical = self._ingest_one(record, mapper, connection_id, object_type, mappings)
            if canonical is not None:
                ingested.append(canonical)
        log.info(
            "Ingested %d/%d %s records for connection %s",
            len(ingested),
            len(records),
            object_type,
            connection_id,
        )
        return ingested

    def _ingest_one(
        self,
        record: SourceRecord,
        mapper: Mapper,
        connection_id: str,
        object_type: ObjectType,
        mappings: tuple[FieldMapping, ...],
    ) -> CanonicalRecord | None:
        try:
            attributes = mapper(record.payload)
        except (RecordMappingError, ValidationError) as exc:
            log.warning("Skipping %s %s: %s", object_type, record.remote_id, exc)
            return None
        field_mappings = project_fields(record.payload, mappings)

        repositories = self._uow.repositories
        if isinstance(record, CanonicalEntity):
            record.attributes = attributes
            record.field_mappings = field_mappings
            record.internal_id = repositories.entities.upsert(record)
            canonical: CanonicalRecord = record
        else:
            sub_entity = CanonicalSubEntity(
                remote_id=record.remote_id,
                connection_id=connection_id,
                object_type=object_type,
                attributes=attributes,
                field_mappings=field_mappings,
                payload=dict(record.payload),
            )
            sub_entity.internal_id = repositories.sub_entities.upsert(sub_entity)
            canonical = sub_entity
        self._uow.commit()
        return canonical
