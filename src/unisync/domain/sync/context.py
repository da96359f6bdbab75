"""Per-run state shared by the fetcher and the hierarchy resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from unisync.domain.model import CanonicalEntity, ObjectType, RemoteEntity

log = getLogger(__name__)

ROOT_MARKER: Final[str] = "root"


class WarningKind(StrEnum):
    CYCLE = "cycle"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True, slots=True)
class ResolutionWarning:
    kind: WarningKind
    remote_id: str
    detail: str


@dataclass(slots=True)
class ResolutionContext:
    """Memoization and bookkeeping for exactly one sync run of one connection.

    ``resolved`` maps remote ids placed during this run to their internal ids;
    ``internal_parents`` remembers the parent each placement received so that
    ancestry checks see this run's moves before the store does.
    """

    connection_id: str
    object_type: ObjectType
    known_roots: frozenset[str] = frozenset({ROOT_MARKER})
    resolved: dict[str, UUID] = field(default_factory=dict["str", "UUID"])
    placed: dict[str, CanonicalEntity] = field(default_factory=dict["str", "CanonicalEntity"])
    internal_parents: dict[UUID, UUID | None] = field(
        default_factory=dict["UUID", "UUID | None"]
    )
    parent_lookups: dict[str, UUID | None] = field(default_factory=dict["str", "UUID | None"])
    stored_parents: dict[UUID, UUID | None] = field(default_factory=dict["UUID", "UUID | None"])
    ancestor_fetches: dict[str, asyncio.Task[RemoteEntity | None]] = field(
        default_factory=dict["str", "asyncio.Task[RemoteEntity | None]"]
    )
    warnings: list[ResolutionWarning] = field(default_factory=list[ResolutionWarning])

    @classmethod
    def for_run(
        cls,
        connection_id: str,
        object_type: ObjectType,
        *,
        known_roots: Iterable[str] = (),
        already_resolved: Mapping[str, UUID] | None = None,
    ) -> ResolutionContext:
        return cls(
            connection_id=connection_id,
            object_type=object_type,
            known_roots=frozenset({ROOT_MARKER, *known_roots}),
            resolved=dict(already_resolved or {}),
        )

    def is_root(self, remote_id: str | None) -> bool:
        return remote_id is None or remote_id in self.known_roots

    def record(self, entity: CanonicalEntity) -> None:
        self.resolved[entity.remote_id] = entity.internal_id
        self.placed[entity.remote_id] = entity
        self.internal_parents[entity.internal_id] = entity.internal_parent_id

    def warn(self, kind: WarningKind, remote_id: str, detail: str) -> None:
        log.warning("Connection %s: %s for %s: %s", self.connection_id, kind, remote_id, detail)
        self.warnings.append(ResolutionWarning(kind=kind, remote_id=remote_id, detail=detail))
