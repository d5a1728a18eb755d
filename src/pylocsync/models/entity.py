"""Geo-tagged entity models.

Stores, deliveries and drivers share one payload (``id``, ``lat``,
``lng``) and differ only in which collection they live in, which icon
the map uses for them, and which uniqueness namespace their id belongs
to. :class:`EntityKind` carries those per-kind rules.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator

from pylocsync._normalize import safe_str
from pylocsync.models._base import Latitude, LocSyncBaseModel, Longitude
from pylocsync.models.location import Location

_logger = logging.getLogger(__name__)


class EntityKind(StrEnum):
    STORE = "store"
    DELIVERY = "delivery"
    DRIVER = "driver"

    @property
    def collection(self) -> str:
        """Registry collection name (also the DELETE path segment)."""
        return _COLLECTIONS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def shares_namespace(self) -> bool:
        """Whether ids of this kind live in the shared store/delivery namespace."""
        return self is not EntityKind.DRIVER

    @classmethod
    def parse(cls, kind: str | EntityKind) -> EntityKind:
        """Resolve a kind value, ignoring case and surrounding whitespace.

        Raises :class:`ValueError` for anything else.
        """
        return cls(kind.strip().lower() if isinstance(kind, str) else kind)

    @classmethod
    def from_collection(cls, name: str | EntityKind) -> EntityKind:
        """Resolve a collection name (``"stores"``) or kind (``"store"``)."""
        if isinstance(name, EntityKind):
            return name
        if not isinstance(name, str):
            raise ValueError(f"unknown collection: {name!r}")
        normalized = name.strip().lower()
        for kind, collection in _COLLECTIONS.items():
            if normalized in (collection, kind.value):
                return kind
        raise ValueError(f"unknown collection: {name!r}")


_COLLECTIONS: dict[EntityKind, str] = {
    EntityKind.STORE: "stores",
    EntityKind.DELIVERY: "deliveries",
    EntityKind.DRIVER: "drivers",
}

_ICONS: dict[EntityKind, str] = {
    EntityKind.STORE: "store-icon.png",
    EntityKind.DELIVERY: "delivery-icon.png",
    EntityKind.DRIVER: "driver-icon.png",
}


class Entity(LocSyncBaseModel):
    """A store, delivery or driver placed on the map.

    Parameters
    ----------
    kind : EntityKind
        Which of the three variants this entity is.
    id : str
        Identifier, unique within the entity's namespace.
    lat : float
        Latitude in degrees.
    lng : float
        Longitude in degrees.
    """

    kind: EntityKind
    id: str
    lat: Latitude
    lng: Longitude

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        entity_id = safe_str(value)
        if entity_id is None:
            raise ValueError("id must be non-empty")
        return entity_id

    @classmethod
    def create(cls, kind: EntityKind, entity_id: str, location: Location) -> Entity:
        return cls(kind=kind, id=entity_id, lat=location.lat, lng=location.lng)

    @classmethod
    def from_payload(cls, kind: EntityKind, data: Any) -> Entity | None:
        """Parse one registry document, or ``None`` when it is incomplete."""
        if not isinstance(data, Mapping):
            _logger.warning("Dropping non-object %s entry: %r", kind.value, data)
            return None
        try:
            return cls.model_validate({**data, "kind": kind})
        except PydanticValidationError as exc:
            _logger.warning(
                "Dropping invalid %s entry id=%r: %d validation error(s)",
                kind.value,
                data.get("id"),
                exc.error_count(),
            )
            return None

    @property
    def location(self) -> Location:
        return Location(lat=self.lat, lng=self.lng)

    def with_location(self, location: Location) -> Entity:
        """Return a copy moved to *location*; identity and kind are kept."""
        return self.model_copy(update={"lat": location.lat, "lng": location.lng})

    def as_payload(self) -> dict[str, Any]:
        """Entity JSON shape as served by ``/locations``."""
        return {"id": self.id, "lat": self.lat, "lng": self.lng}

    def as_create_payload(self) -> dict[str, Any]:
        """Request body for ``/addLocation`` (adds ``type``)."""
        return {"id": self.id, "type": self.kind.value, "lat": self.lat, "lng": self.lng}
