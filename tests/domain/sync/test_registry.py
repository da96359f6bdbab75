from __future__ import annotations

import pytest

from unisync.adapters.registry import build_default_registry
from unisync.domain.model import ObjectType, Provider, Vertical
from unisync.domain.sync import ConnectorNotFoundError, ConnectorRegistry, ProviderConnector
from tests.helpers.sync import FakeProvider, folder_mapper


def test_unknown_provider_raises() -> None:
    registry = ConnectorRegistry()

    with pytest.raises(ConnectorNotFoundError) as excinfo:
        registry.get(Provider.GOOGLEDRIVE)

    assert excinfo.value.provider == Provider.GOOGLEDRIVE
    assert registry.providers() == []


def test_adding_a_connector_registers_its_mappers() -> None:
    connector = ProviderConnector(
        provider=Provider.GOOGLEDRIVE,
        vertical=Vertical.FILESTORAGE,
        object_type=ObjectType.FOLDER,
        provider_factory=lambda _connection: FakeProvider(),
        mappers={ObjectType.FOLDER: folder_mapper},
    )

    registry = ConnectorRegistry([connector])

    assert registry.get(Provider.GOOGLEDRIVE) is connector
    assert registry.providers() == [Provider.GOOGLEDRIVE]
    assert (
        registry.mappers.get(Provider.GOOGLEDRIVE, Vertical.FILESTORAGE, ObjectType.FOLDER)
        is folder_mapper
    )


def test_default_registry_wires_google_drive_folders() -> None:
    registry = build_default_registry()

    connector = registry.get(Provider.GOOGLEDRIVE)
    assert connector.object_type is ObjectType.FOLDER
    assert connector.sub_object_type is ObjectType.PERMISSION
    assert "root" in connector.known_roots
    assert (Provider.GOOGLEDRIVE, Vertical.FILESTORAGE, ObjectType.FOLDER) in registry.mappers
    assert (Provider.GOOGLEDRIVE, Vertical.FILESTORAGE, ObjectType.PERMISSION) in registry.mappers
