"""Drain paginated provider listings for full and incremental runs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from unisync.domain.model import SyncMode
from unisync.domain.ports import EntityQuery

if TYPE_CHECKING:
    from datetime import datetime

    from unisync.domain.model import RemoteEntity
    from unisync.domain.ports import RemoteProvider

    from .context import ResolutionContext
    from .executor import RateLimitedExecutor
    from .hierarchy import HierarchyResolver

log = getLogger(__name__)

DEFAULT_TRAVERSAL_CONCURRENCY = 8


@dataclass(frozen=True, slots=True)
class FetchMode:
    kind: SyncMode
    since: datetime | None = None

    @classmethod
    def full(cls) -> FetchMode:
        return cls(SyncMode.FULL)

    @classmethod
    def incremental(cls, since: datetime) -> FetchMode:
        return cls(SyncMode.INCREMENTAL, since)


class PaginatedFetcher:
    """Fetch every entity a run needs, one executor-guarded page at a time.

    Full runs walk the provider's containers level by level; each level's
    children are placed by the resolver before they are expanded, so
    every child sees an already-resolved parent. Incremental runs refresh the
    container ids, issue one flat ``modified_since`` listing and leave
    ordering to the resolver.
    """

    def __init__(
        self,
        *,
        provider: RemoteProvider,
        executor: RateLimitedExecutor,
        resolver: HierarchyResolver | None = None,
        traversal_concurrency: int = DEFAULT_TRAVERSAL_CONCURRENCY,
    ) -> None:
        if traversal_concurrency < 1:
            raise ValueError("traversal_concurrency must be at least 1")
        self._provider = provider
        self._executor = executor
        self._resolver = resolver
        self._traversal_concurrency = traversal_concurrency

    async def drain(self, query: EntityQuery) -> list[RemoteEntity]:
        entities: list[RemoteEntity] = []
        page_token: str | None = None
        pages = 0
        while True:
            page = await self._executor.execute(
                partial(self._provider.list_entities, query, page_token)
            )
            pages += 1
            entities.extend(page.entities)
            if not page.next_page_token:
                break
            page_token = page.next_page_token
        log.debug("Drained %d entities over %d pages for %s", len(entities), pages, query)
        return entities

    async def fetch(
        self,
        query: EntityQuery,
        mode: FetchMode,
        *,
        context: ResolutionContext | None = None,
    ) -> list[RemoteEntity]:
        if mode.kind is SyncMode.INCREMENTAL:
            if context is not None:
                await self._register_containers(context)
            incremental = EntityQuery(modified_since=mode.since, page_size=query.page_size)
            return await self.drain(incremental)
        if context is None or self._resolver is None:
            raise ValueError("full traversal requires a resolver and a resolution context")
        return await self._traverse(query, self._resolver, context)

    async def _register_containers(self, context: ResolutionContext) -> list[str]:
        """Containers are root-equivalent parents in both modes."""

        containers = await self._executor.execute(self._provider.list_containers)
        context.known_roots = context.known_roots.union(containers)
        return containers

    async def _traverse(
        self,
        query: EntityQuery,
        resolver: HierarchyResolver,
        context: ResolutionContext,
    ) -> list[RemoteEntity]:
        containers = await self._register_containers(context)
        log.info(
            "Connection %s: full traversal over %d containers",
            context.connection_id,
            len(containers),
        )
        semaphore = asyncio.Semaphore(self._traversal_concurrency)
        collected: list[RemoteEntity] = []
        # (remote parent id, container id) pairs still to expand
        level: list[tuple[str, str | None]] = [(container, container) for container in containers]
        depth = 0
        while level:
            expanded = await asyncio.gather(
                *(
                    self._expand(
                        query, parent_id, container_id, depth, semaphore, resolver, context
                    )
                    for parent_id, container_id in level
                )
            )
            level = []
            for children in expanded:
                collected.extend(children)
                level.extend((child.remote_id, child.container_id) for child in children)
            depth += 1
        return collected

    async def _expand(
        self,
        query: EntityQuery,
        parent_id: str,
        container_id: str | None,
        depth: int,
        semaphore: asyncio.Semaphore,
        resolver: HierarchyResolver,
        context: ResolutionContext,
    ) -> list[RemoteEntity]:
        async with semaphore:
            children = await self.drain(query.children_of(parent_id, container_id=container_id))
        # an entity reachable twice is expanded once
        fresh = {
            child.remote_id: child.annotated(depth=depth, container_id=container_id)
            for child in children
            if child.remote_id not in context.placed
        }
        await resolver.resolve(list(fresh.values()), context)
        return list(fresh.values())
