"""Connections and per-invocation sync settings handed to the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from unisync.domain.model.enums import ObjectType, Provider, Vertical


@dataclass(frozen=True, slots=True)
class Connection:
    """A linked account at a provider.

    The engine treats ``access_token`` as an opaque capability handle; refresh
    and encryption happen elsewhere.
    """

    connection_id: str
    provider: Provider
    vertical: Vertical
    access_token: str = field(default="", repr=False)


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Projects ``payload[remote_attribute]`` into ``field_mappings[slug]``."""

    slug: str
    remote_attribute: str


@dataclass(frozen=True, slots=True)
class SyncWatermark:
    connection_id: str
    object_type: ObjectType
    last_synced_at: datetime
