"""Explicit provider connector lookup."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import ConnectorNotFoundError
from .ingestion import MapperRegistry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from contextlib import AbstractAsyncContextManager

    from unisync.domain.model import Connection, ObjectType, Provider, Vertical
    from unisync.domain.ports import RemoteProvider

    from .ingestion import Mapper

type ProviderFactory = Callable[[Connection], AbstractAsyncContextManager[RemoteProvider]]


@dataclass(frozen=True, slots=True)
class ProviderConnector:
    """Everything the orchestrator needs to sync one provider's object type.

    ``sub_object_type`` names the embedded records deduplicated across
    entities (``None`` when the object type embeds nothing).
    """

    provider: Provider
    vertical: Vertical
    object_type: ObjectType
    provider_factory: ProviderFactory
    mappers: Mapping[ObjectType, Mapper]
    sub_object_type: ObjectType | None = None
    known_roots: frozenset[str] = field(default_factory=frozenset[str])


class ConnectorRegistry:
    """Connectors keyed by provider, loaded once from a static table."""

    def __init__(self, connectors: Iterable[ProviderConnector] = ()) -> None:
        self._connectors: dict[Provider, ProviderConnector] = {}
        self.mappers = MapperRegistry()
        for connector in connectors:
            self.add(connector)

    def add(self, connector: ProviderConnector) -> None:
        self._connectors[connector.provider] = connector
        for object_type, mapper in connector.mappers.items():
            self.mappers.register(connector.provider, connector.vertical, object_type, mapper)

    def get(self, provider: Provider) -> ProviderConnector:
        try:
            return self._connectors[provider]
        except KeyError:
            raise ConnectorNotFoundError(provider) from None

    def providers(self) -> list[Provider]:
        return sorted(self._connectors)
