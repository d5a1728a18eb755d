"""Marker model consumed by the map surface."""

from __future__ import annotations

from pylocsync.models._base import LocSyncBaseModel
from pylocsync.models.entity import Entity, EntityKind


class Marker(LocSyncBaseModel):
    kind: EntityKind
    id: str
    lat: float
    lng: float
    icon: str

    @classmethod
    def for_entity(cls, entity: Entity) -> Marker:
        return cls(kind=entity.kind, id=entity.id, lat=entity.lat, lng=entity.lng, icon=entity.kind.icon)
