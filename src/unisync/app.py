"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from unisync.adapters.registry import build_default_registry
from unisync.adapters.sqlalchemy.unit_of_work import SqlAlchemySyncUnitOfWork, is_started, startup
from unisync.config import get_sync_config
from unisync.domain.ports.unit_of_work import SyncUnitOfWork
from unisync.domain.sync import BackoffPolicy, ConnectionPacer, SyncOrchestrator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from unisync.config import SyncConfig
    from unisync.domain.model import Connection, FieldMapping
    from unisync.domain.sync import ConnectorRegistry, SyncResult

UnitOfWorkFactory = Callable[[], SyncUnitOfWork]


log = getLogger(__name__)


def build_orchestrator(
    *,
    connectors: ConnectorRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncOrchestrator:
    """Wire the orchestrator with the configured store, connectors and pacing."""

    config = sync_config or get_sync_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemySyncUnitOfWork
    return SyncOrchestrator(
        connectors=connectors or build_default_registry(),
        unit_of_work_factory=unit_of_work_factory,
        policy=BackoffPolicy(
            max_retries=config.max_retries,
            base_backoff_seconds=config.base_backoff_seconds,
        ),
        pacer=ConnectionPacer(config.min_call_spacing_seconds),
        traversal_concurrency=config.traversal_concurrency,
        page_size=config.page_size,
    )


def sync_connection(
    connection: Connection,
    *,
    custom_field_mappings: Sequence[FieldMapping] | None = None,
    connectors: ConnectorRegistry | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncResult:
    """Run one sync for ``connection`` using the configured adapters."""

    orchestrator = build_orchestrator(
        connectors=connectors,
        unit_of_work_factory=unit_of_work_factory,
        sync_config=sync_config,
    )
    log.info(
        "Starting sync: provider=%s, connection=%s, custom_fields=%d",
        connection.provider,
        connection.connection_id,
        len(custom_field_mappings or ()),
    )
    result = asyncio.run(
        orchestrator.run_sync(connection, custom_field_mappings=custom_field_mappings)
    )
    log.info(
        f"Finished sync: state={result.state}, mode={result.mode}, "
        f"entities={result.entity_count}, sub_entities={result.sub_entity_count}, "
        f"warnings={len(result.warnings)}"
    )
    return result
