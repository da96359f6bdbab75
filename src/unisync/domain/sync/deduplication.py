"""Store shared sub-entities once and point every owner at the stored copy."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from unisync.domain.model import (
        CanonicalEntity,
        Connection,
        FieldMapping,
        ObjectType,
        RemoteSubEntity,
    )

    from .ingestion import CanonicalIngestionPipeline

log = getLogger(__name__)


class CrossEntityDeduplicator:
    def __init__(self, pipeline: CanonicalIngestionPipeline) -> None:
        self._pipeline = pipeline

    def dedupe_and_relink(
        self,
        entities: Sequence[CanonicalEntity],
        *,
        connection: Connection,
        sub_object_type: ObjectType,
        custom_field_mappings: Sequence[FieldMapping] | None = None,
    ) -> Sequence[CanonicalEntity]:
        """Ingest the distinct embedded sub-entities once and fill ``sub_entity_ids``.

        Sub-entities are keyed by remote id; when two owners embed different
        payloads for the same id, the last one seen wins. References whose
        sub-entity failed to ingest are dropped from ``sub_entity_ids``.
        """

        unique: dict[str, RemoteSubEntity] = {}
        for entity in entities:
            for sub_entity in entity.sub_entities:
                unique[sub_entity.remote_id] = sub_entity
        if not unique:
            return entities

        ingested = self._pipeline.ingest(
            list(unique.values()),
            provider=connection.provider,
            connection_id=connection.connection_id,
            vertical=connection.vertical,
            object_type=sub_object_type,
            custom_field_mappings=custom_field_mappings,
        )
        stored: dict[str, UUID] = {record.remote_id: record.internal_id for record in ingested}
        log.info(
            "Connection %s: %d references to %d distinct %s records (%d stored)",
            connection.connection_id,
            sum(len(entity.sub_entities) for entity in entities),
            len(unique),
            sub_object_type,
            len(stored),
        )

        for entity in entities:
            entity.sub_entity_ids = list(
                dict.fromkeys(
                    stored[sub_entity.remote_id]
                    for sub_entity in entity.sub_entities
                    if sub_entity.remote_id in stored
                )
            )
        return entities
