"""Static connector table.

Adding a provider means adding an entry here; nothing registers itself on import.
"""

from __future__ import annotations

from unisync.adapters.googledrive import build_googledrive_provider, unify_folder, unify_permission
from unisync.domain.model import ObjectType, Provider, Vertical
from unisync.domain.sync import ROOT_MARKER, ConnectorRegistry, ProviderConnector

CONNECTORS: dict[Provider, ProviderConnector] = {
    Provider.GOOGLEDRIVE: ProviderConnector(
        provider=Provider.GOOGLEDRIVE,
        vertical=Vertical.FILESTORAGE,
        object_type=ObjectType.FOLDER,
        sub_object_type=ObjectType.PERMISSION,
        provider_factory=build_googledrive_provider,
        mappers={
            ObjectType.FOLDER: unify_folder,
            ObjectType.PERMISSION: unify_permission,
        },
        known_roots=frozenset({ROOT_MARKER}),
    ),
}


def build_default_registry() -> ConnectorRegistry:
    return ConnectorRegistry(CONNECTORS.values())
