"""Transient map selection awaiting submit."""

from __future__ import annotations

from pylocsync.models._base import LocSyncBaseModel
from pylocsync.models.entity import EntityKind
from pylocsync.models.location import Location


class PendingSelection(LocSyncBaseModel):
    """What the operator has picked but not yet submitted.

    ``location`` comes from the last map click; ``entity_id`` and
    ``kind`` from the form. Never persisted.
    """

    location: Location | None = None
    entity_id: str = ""
    kind: EntityKind = EntityKind.STORE

    def with_location(self, location: Location) -> PendingSelection:
        return self.model_copy(update={"location": location})

    def with_form(self, entity_id: str, kind: EntityKind) -> PendingSelection:
        return self.model_copy(update={"entity_id": entity_id, "kind": kind})
