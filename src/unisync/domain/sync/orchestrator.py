"""
Drive one sync run for one connection.

A run moves through ``Idle -> Fetching -> Resolving -> Deduplicating ->
Ingesting -> Advancing -> Idle``. Any failure lands in ``Failed`` with the
watermark untouched, so the next run repeats the same window.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from unisync.domain.model import SyncMode, SyncState
from unisync.domain.ports import EntityQuery

from .context import ResolutionContext, ResolutionWarning, WarningKind
from .deduplication import CrossEntityDeduplicator
from .errors import InvalidTransitionError
from .executor import BackoffPolicy, RateLimitedExecutor
from .fetching import DEFAULT_TRAVERSAL_CONCURRENCY, FetchMode, PaginatedFetcher
from .hierarchy import HierarchyResolver, parents_first
from .ingestion import CanonicalIngestionPipeline

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from uuid import UUID

    from unisync.domain.model import CanonicalEntity, Connection, FieldMapping
    from unisync.domain.ports import CanonicalEntityRepository, SyncUnitOfWork

    from .executor import ConnectionPacer, Sleep
    from .registry import ConnectorRegistry, ProviderConnector

log = getLogger(__name__)

ALLOWED_TRANSITIONS: Final[Mapping[SyncState, frozenset[SyncState]]] = {
    SyncState.IDLE: frozenset({SyncState.FETCHING}),
    SyncState.FETCHING: frozenset({SyncState.RESOLVING, SyncState.FAILED}),
    SyncState.RESOLVING: frozenset({SyncState.DEDUPLICATING, SyncState.FAILED}),
    SyncState.DEDUPLICATING: frozenset({SyncState.INGESTING, SyncState.FAILED}),
    SyncState.INGESTING: frozenset({SyncState.ADVANCING, SyncState.FAILED}),
    SyncState.ADVANCING: frozenset({SyncState.IDLE, SyncState.FAILED}),
    SyncState.FAILED: frozenset({SyncState.IDLE}),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class SyncResult:
    """Outcome of one run."""

    connection_id: str
    entity_count: int = 0
    sub_entity_count: int = 0
    mode: SyncMode | None = None
    state: SyncState = SyncState.IDLE
    warnings: list[ResolutionWarning] = field(default_factory=list[ResolutionWarning])
    error: Exception | None = None
    started_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class SyncRun:
    """State machine of a single run; concurrent runs never share one."""

    connection_id: str
    state: SyncState = SyncState.IDLE

    def transition(self, target: SyncState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        log.debug("Connection %s: sync state %s -> %s", self.connection_id, self.state, target)
        self.state = target


class SyncOrchestrator:
    def __init__(
        self,
        *,
        connectors: ConnectorRegistry,
        unit_of_work_factory: Callable[[], SyncUnitOfWork],
        policy: BackoffPolicy | None = None,
        pacer: ConnectionPacer | None = None,
        sleep: Sleep = asyncio.sleep,
        traversal_concurrency: int = DEFAULT_TRAVERSAL_CONCURRENCY,
        page_size: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._connectors = connectors
        self._uow_factory = unit_of_work_factory
        self._policy = policy or BackoffPolicy()
        self._pacer = pacer
        self._sleep = sleep
        self._traversal_concurrency = traversal_concurrency
        self._page_size = page_size
        self._clock = clock
        self._runs: dict[str, SyncRun] = {}

    def state_of(self, connection_id: str) -> SyncState:
        """State of the latest run for ``connection_id``; idle if it never ran."""

        run = self._runs.get(connection_id)
        return run.state if run is not None else SyncState.IDLE

    async def run_sync(
        self,
        connection: Connection,
        *,
        custom_field_mappings: Sequence[FieldMapping] | None = None,
    ) -> SyncResult:
        """Fetch, place, deduplicate and persist one connection's entities.

        Errors never escape: they are logged, the run enters ``Failed`` and
        the returned result carries the error. Runs of different connections
        may proceed concurrently; runs of one connection must be serialized by
        the caller.
        """

        run = SyncRun(connection.connection_id)
        self._runs[connection.connection_id] = run
        started_at = self._clock()
        result = SyncResult(connection_id=connection.connection_id, started_at=started_at)
        run.transition(SyncState.FETCHING)
        log.info(
            "Starting %s sync for connection %s", connection.provider, connection.connection_id
        )
        try:
            await self._run(run, connection, result, started_at, custom_field_mappings)
        except Exception as exc:
            log.exception(
                "Sync for connection %s failed in state %s", connection.connection_id, run.state
            )
            run.transition(SyncState.FAILED)
            result.error = exc
        result.state = run.state
        if result.ok:
            log.info(
                "Finished %s sync for connection %s: entities=%d, sub_entities=%d, warnings=%d",
                result.mode,
                connection.connection_id,
                result.entity_count,
                result.sub_entity_count,
                len(result.warnings),
            )
        return result

    async def _run(
        self,
        run: SyncRun,
        connection: Connection,
        result: SyncResult,
        started_at: datetime,
        custom_field_mappings: Sequence[FieldMapping] | None,
    ) -> None:
        connector = self._connectors.get(connection.provider)
        with self._uow_factory() as uow:
            repositories = uow.repositories
            watermark = repositories.watermarks.get(connection.connection_id, connector.object_type)
            mode = FetchMode.full() if watermark is None else FetchMode.incremental(watermark)
            result.mode = mode.kind
            context = ResolutionContext.for_run(
                connection.connection_id,
                connector.object_type,
                known_roots=connector.known_roots,
            )
            result.warnings = context.warnings

            async with connector.provider_factory(connection) as provider:
                executor = RateLimitedExecutor(
                    connection_id=connection.connection_id,
                    policy=self._policy,
                    pacer=self._pacer,
                    sleep=self._sleep,
                )
                resolver = HierarchyResolver(
                    entities=repositories.entities, provider=provider, executor=executor
                )
                fetcher = PaginatedFetcher(
                    provider=provider,
                    executor=executor,
                    resolver=resolver,
                    traversal_concurrency=self._traversal_concurrency,
                )
                remote = await fetcher.fetch(
                    EntityQuery(page_size=self._page_size), mode, context=context
                )
                run.transition(SyncState.RESOLVING)
                placed = await resolver.resolve(remote, context)

            pipeline = CanonicalIngestionPipeline(
                unit_of_work=uow, mappers=self._connectors.mappers
            )
            run.transition(SyncState.DEDUPLICATING)
            placed = self._deduplicate(connector, connection, pipeline, placed)
            result.sub_entity_count = len(
                {sub_id for entity in placed for sub_id in entity.sub_entity_ids}
            )

            run.transition(SyncState.INGESTING)
            result.entity_count = self._ingest(
                connector,
                connection,
                pipeline,
                repositories.entities,
                placed,
                context,
                custom_field_mappings,
            )

            run.transition(SyncState.ADVANCING)
            repositories.watermarks.set(
                connection.connection_id, connector.object_type, started_at
            )
            uow.commit()
        run.transition(SyncState.IDLE)

    @staticmethod
    def _deduplicate(
        connector: ProviderConnector,
        connection: Connection,
        pipeline: CanonicalIngestionPipeline,
        placed: Sequence[CanonicalEntity],
    ) -> Sequence[CanonicalEntity]:
        if connector.sub_object_type is None:
            return placed
        deduplicator = CrossEntityDeduplicator(pipeline)
        return deduplicator.dedupe_and_relink(
            placed, connection=connection, sub_object_type=connector.sub_object_type
        )

    @staticmethod
    def _ingest(
        connector: ProviderConnector,
        connection: Connection,
        pipeline: CanonicalIngestionPipeline,
        entities: CanonicalEntityRepository,
        placed: Sequence[CanonicalEntity],
        context: ResolutionContext,
        custom_field_mappings: Sequence[FieldMapping] | None,
    ) -> int:
        """Persist parents before children; re-root children of rejected new parents."""

        rejected: set[UUID] = set()
        ingested = 0
        for entity in parents_first(placed):
            parent_id = entity.internal_parent_id
            if parent_id is not None and parent_id in rejected and entities.get(parent_id) is None:
                context.warn(
                    WarningKind.UNREACHABLE,
                    entity.remote_id,
                    f"parent {entity.remote_parent_id} was not ingested",
                )
                entity.internal_parent_id = None
            record = pipeline.ingest(
                entity,
                provider=connection.provider,
                connection_id=connection.connection_id,
                vertical=connection.vertical,
                object_type=connector.object_type,
                custom_field_mappings=custom_field_mappings,
            )
            if record is None:
                rejected.add(entity.internal_id)
            else:
                ingested += 1
        return ingested
