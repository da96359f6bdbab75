"""
Place remote entities into the local forest.

Entities arrive in any order. Whatever can be attached to an already known
parent is placed in repeated passes; once a pass makes no progress, the
remaining entities are resolved by walking their remote ancestor chains. Graph
problems (cycles, ancestors the provider no longer knows) never abort a batch:
the affected entity becomes a root and a warning is recorded on the context.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from unisync.domain.model import CanonicalEntity, new_id

from .context import WarningKind
from .errors import EntityNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from unisync.domain.model import RemoteEntity
    from unisync.domain.ports import CanonicalEntityRepository, RemoteProvider

    from .context import ResolutionContext
    from .executor import RateLimitedExecutor

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Anchor:
    """A resolvable parent; ``internal_id`` is ``None`` for root-equivalent parents."""

    internal_id: UUID | None


@dataclass(frozen=True, slots=True)
class _WalkOutcome:
    anchor: _Anchor | None
    nearest_pending: str | None = None


@dataclass(frozen=True, slots=True)
class _Identity:
    internal_id: UUID
    persisted: bool


class HierarchyResolver:
    """Assign internal ids and internal parent links to a batch of remote entities."""

    def __init__(
        self,
        *,
        entities: CanonicalEntityRepository,
        provider: RemoteProvider | None = None,
        executor: RateLimitedExecutor | None = None,
    ) -> None:
        self._entities = entities
        self._provider = provider
        self._executor = executor

    async def resolve(
        self,
        pending: Sequence[RemoteEntity],
        context: ResolutionContext,
    ) -> list[CanonicalEntity]:
        output: list[CanonicalEntity] = []
        remaining: dict[str, RemoteEntity] = {}
        for remote in pending:
            placed = context.placed.get(remote.remote_id)
            if placed is not None:
                output.append(placed)
            else:
                remaining[remote.remote_id] = remote

        moves: list[CanonicalEntity] = []
        passes = 0
        while remaining:
            passes += 1
            still_pending: dict[str, RemoteEntity] = {}
            for remote in remaining.values():
                anchor = self._lookup_parent(remote.remote_parent_id, context)
                if anchor is None:
                    still_pending[remote.remote_id] = remote
                    continue
                identity = self._identity_for(remote, context)
                output.append(self._place(remote, identity, anchor.internal_id, context, moves))
            if len(still_pending) == len(remaining):
                log.info(
                    "Connection %s: fixed point after %d passes, walking ancestry for %d entities",
                    context.connection_id,
                    passes,
                    len(still_pending),
                )
                fallback = await self._resolve_by_ancestry(
                    list(still_pending.values()), context, moves
                )
                output.extend(fallback)
                break
            remaining = still_pending
        self._refuse_cyclic_moves(moves, context)
        return output

    def _lookup_parent(
        self, remote_parent_id: str | None, context: ResolutionContext
    ) -> _Anchor | None:
        if remote_parent_id is None:
            return _Anchor(None)
        resolved = context.resolved.get(remote_parent_id)
        if resolved is not None:
            return _Anchor(resolved)
        if context.is_root(remote_parent_id):
            return _Anchor(None)
        if remote_parent_id not in context.parent_lookups:
            context.parent_lookups[remote_parent_id] = self._entities.find_internal_id(
                remote_parent_id, context.connection_id, context.object_type
            )
        stored = context.parent_lookups[remote_parent_id]
        return _Anchor(stored) if stored is not None else None

    def _identity_for(self, remote: RemoteEntity, context: ResolutionContext) -> _Identity:
        existing = context.resolved.get(remote.remote_id)
        if existing is None:
            existing = self._entities.find_internal_id(
                remote.remote_id, context.connection_id, context.object_type
            )
        if existing is not None:
            return _Identity(existing, persisted=True)
        return _Identity(new_id(), persisted=False)

    def _place(
        self,
        remote: RemoteEntity,
        identity: _Identity,
        parent_id: UUID | None,
        context: ResolutionContext,
        moves: list[CanonicalEntity],
    ) -> CanonicalEntity:
        entity = CanonicalEntity.from_remote(
            remote,
            internal_id=identity.internal_id,
            internal_parent_id=parent_id,
            connection_id=context.connection_id,
            object_type=context.object_type,
        )
        context.record(entity)
        if identity.persisted and parent_id is not None:
            moves.append(entity)
        return entity

    def _refuse_cyclic_moves(
        self, moves: Sequence[CanonicalEntity], context: ResolutionContext
    ) -> None:
        """Re-root stored entities whose new parent chain leads back to themselves.

        Runs once the whole batch is placed, so ancestry reflects every move in
        the batch regardless of the order entities arrived in.
        """

        for entity in moves:
            parent_id = entity.internal_parent_id
            if parent_id is None or not self._is_ancestor(entity.internal_id, parent_id, context):
                continue
            context.warn(
                WarningKind.CYCLE,
                entity.remote_id,
                f"moving under {entity.remote_parent_id} would make it its own ancestor",
            )
            entity.internal_parent_id = None
            context.internal_parents[entity.internal_id] = None

    def _is_ancestor(self, candidate: UUID, start: UUID, context: ResolutionContext) -> bool:
        """Whether ``candidate`` is ``start`` or one of its ancestors."""

        seen: set[UUID] = set()
        current: UUID | None = start
        while current is not None:
            if current == candidate:
                return True
            # a loop that bypasses candidate is broken when its own move is checked
            if current in seen:
                return False
            seen.add(current)
            current = self._parent_of(current, context)
        return False

    def _parent_of(self, internal_id: UUID, context: ResolutionContext) -> UUID | None:
        if internal_id in context.internal_parents:
            return context.internal_parents[internal_id]
        if internal_id not in context.stored_parents:
            context.stored_parents[internal_id] = self._entities.find_parent_id(internal_id)
        return context.stored_parents[internal_id]

    async def _resolve_by_ancestry(
        self,
        pending: list[RemoteEntity],
        context: ResolutionContext,
        moves: list[CanonicalEntity],
    ) -> list[CanonicalEntity]:
        by_remote_id = {remote.remote_id: remote for remote in pending}
        identities = {remote.remote_id: self._identity_for(remote, context) for remote in pending}

        outcomes = await asyncio.gather(
            *(self._walk(remote, by_remote_id, context) for remote in pending)
        )

        parents: dict[str, UUID | None] = {}
        for remote, outcome in zip(pending, outcomes, strict=True):
            if outcome.anchor is None:
                parents[remote.remote_id] = None
            elif outcome.nearest_pending is not None:
                parents[remote.remote_id] = identities[outcome.nearest_pending].internal_id
            else:
                parents[remote.remote_id] = outcome.anchor.internal_id

        return [
            self._place(
                remote, identities[remote.remote_id], parents[remote.remote_id], context, moves
            )
            for remote in pending
        ]

    async def _walk(
        self,
        remote: RemoteEntity,
        batch: dict[str, RemoteEntity],
        context: ResolutionContext,
    ) -> _WalkOutcome:
        """Follow ``remote``'s ancestor chain to the first resolvable ancestor.

        In-batch ancestors are crossed without remote calls; the nearest one is
        remembered and becomes the parent when the chain ends at an anchor.
        """

        visited = {remote.remote_id}
        nearest_pending: str | None = None
        current = remote.remote_parent_id
        while True:
            if current is None or current in context.known_roots:
                return _WalkOutcome(_Anchor(None), nearest_pending)
            if current in visited:
                # a cycle anywhere above roots the entity, even past an in-batch ancestor
                context.warn(WarningKind.CYCLE, remote.remote_id, f"ancestor {current} revisited")
                return _WalkOutcome(None)
            visited.add(current)

            in_batch = batch.get(current)
            if in_batch is not None:
                nearest_pending = nearest_pending or current
                current = in_batch.remote_parent_id
                continue

            anchor = self._lookup_parent(current, context)
            if anchor is not None:
                return _WalkOutcome(anchor, nearest_pending)

            ancestor = await self._fetch_ancestor(current, context)
            if ancestor is None:
                context.warn(
                    WarningKind.UNREACHABLE,
                    remote.remote_id,
                    f"ancestor {current} could not be fetched",
                )
                return _WalkOutcome(None)
            current = ancestor.remote_parent_id

    async def _fetch_ancestor(
        self, remote_id: str, context: ResolutionContext
    ) -> RemoteEntity | None:
        task = context.ancestor_fetches.get(remote_id)
        if task is None:
            task = asyncio.ensure_future(self._load_ancestor(remote_id))
            context.ancestor_fetches[remote_id] = task
        return await task

    async def _load_ancestor(self, remote_id: str) -> RemoteEntity | None:
        provider = self._provider
        if provider is None:
            return None
        try:
            if self._executor is None:
                return await provider.get_entity(remote_id)
            return await self._executor.execute(lambda: provider.get_entity(remote_id))
        except EntityNotFoundError:
            return None


def parents_first(entities: Iterable[CanonicalEntity]) -> list[CanonicalEntity]:
    """Order ``entities`` so every in-batch parent precedes its children."""

    batch = list(entities)
    by_id = {entity.internal_id: entity for entity in batch}
    ordered: list[CanonicalEntity] = []
    emitted: set[UUID] = set()
    for entity in batch:
        chain: list[CanonicalEntity] = []
        on_chain: set[UUID] = set()
        current: CanonicalEntity | None = entity
        while (
            current is not None
            and current.internal_id not in emitted
            and current.internal_id not in on_chain
        ):
            chain.append(current)
            on_chain.add(current.internal_id)
            parent_id = current.internal_parent_id
            current = by_id.get(parent_id) if parent_id is not None else None
        for node in reversed(chain):
            emitted.add(node.internal_id)
            ordered.append(node)
    return ordered
