"""Full registry snapshot as returned by ``GET /locations``."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pylocsync.models._base import LocSyncBaseModel
from pylocsync.models.entity import Entity, EntityKind

_logger = logging.getLogger(__name__)


def parse_entities(kind: EntityKind, items: Any) -> tuple[Entity, ...]:
    """Parse a collection payload; anything that is not a list is empty.

    Items may be raw registry documents or already-parsed entities; the
    latter are re-tagged with *kind* when needed.
    """
    if not isinstance(items, (list, tuple)):
        if items not in (None, {}):
            _logger.warning("Ignoring non-list %s collection: %r", kind.collection, type(items).__name__)
        return ()
    parsed = (_retag(kind, item) if isinstance(item, Entity) else Entity.from_payload(kind, item) for item in items)
    return tuple(entity for entity in parsed if entity is not None)


def _retag(kind: EntityKind, entity: Entity) -> Entity:
    return entity if entity.kind is kind else entity.model_copy(update={"kind": kind})


class LocationSnapshot(LocSyncBaseModel):
    """The three registry collections at one point in time."""

    stores: tuple[Entity, ...] = ()
    deliveries: tuple[Entity, ...] = ()
    drivers: tuple[Entity, ...] = ()

    @classmethod
    def from_response(cls, body: Any) -> LocationSnapshot:
        """Parse a ``/locations`` response body.

        Two shapes are accepted:

        * ``{"stores": [...], "deliveries": [...], "drivers": [...]}``;
          absent or ``null`` collections are empty.
        * a flat list of documents carrying ``type``, which are grouped
          by kind. Documents with an unknown ``type`` are dropped.

        Raises :class:`ValueError` for any other body.
        """
        if isinstance(body, dict):
            return cls(
                stores=parse_entities(EntityKind.STORE, body.get("stores")),
                deliveries=parse_entities(EntityKind.DELIVERY, body.get("deliveries")),
                drivers=parse_entities(EntityKind.DRIVER, body.get("drivers")),
            )
        if isinstance(body, list):
            return cls.from_documents(body)
        raise ValueError(f"unexpected /locations body type: {type(body).__name__}")

    @classmethod
    def from_documents(cls, documents: Iterable[Any]) -> LocationSnapshot:
        grouped: dict[EntityKind, list[Any]] = {kind: [] for kind in EntityKind}
        for doc in documents:
            raw_type = doc.get("type") if isinstance(doc, dict) else None
            try:
                kind = EntityKind.parse(str(raw_type))
            except ValueError:
                _logger.warning("Dropping location document with unknown type %r", raw_type)
                continue
            grouped[kind].append(doc)
        return cls(
            stores=parse_entities(EntityKind.STORE, grouped[EntityKind.STORE]),
            deliveries=parse_entities(EntityKind.DELIVERY, grouped[EntityKind.DELIVERY]),
            drivers=parse_entities(EntityKind.DRIVER, grouped[EntityKind.DRIVER]),
        )

    def collection(self, kind: EntityKind) -> tuple[Entity, ...]:
        return getattr(self, kind.collection)
