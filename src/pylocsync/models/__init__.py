"""Data models for registry payloads and session state."""

from pylocsync.models._base import Latitude, LocSyncBaseModel, Longitude
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.location import Location
from pylocsync.models.marker import Marker
from pylocsync.models.selection import PendingSelection
from pylocsync.models.snapshot import LocationSnapshot, parse_entities

__all__ = [
    "Entity",
    "EntityKind",
    "Latitude",
    "LocSyncBaseModel",
    "Location",
    "LocationSnapshot",
    "Longitude",
    "Marker",
    "PendingSelection",
    "parse_entities",
]
