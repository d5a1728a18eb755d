"""Location collection endpoints.

Endpoints:
  - GET /locations
  - POST /addLocation
  - DELETE /stores, /deliveries, /drivers
"""

from __future__ import annotations

import logging

from pylocsync._constants import ADD_LOCATION_PATH, LOCATIONS_PATH
from pylocsync._transport import Transport
from pylocsync.exceptions import RemoteError
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.snapshot import LocationSnapshot

_logger = logging.getLogger(__name__)


async def fetch_locations(transport: Transport) -> LocationSnapshot:
    """Fetch the full snapshot of all three collections."""
    body = await transport.request("list", "GET", LOCATIONS_PATH, expect_json=True)
    try:
        snapshot = LocationSnapshot.from_response(body)
    except ValueError as exc:
        raise RemoteError(str(exc), operation="list") from exc
    _logger.debug(
        "Locations response decoded stores=%d deliveries=%d drivers=%d",
        len(snapshot.stores),
        len(snapshot.deliveries),
        len(snapshot.drivers),
    )
    return snapshot


async def add_location(transport: Transport, entity: Entity) -> None:
    await transport.request("create", "POST", ADD_LOCATION_PATH, entity.as_create_payload())


async def delete_location(transport: Transport, kind: EntityKind, entity_id: str) -> None:
    """Delete *entity_id* from the collection of *kind*."""
    await transport.request("delete", "DELETE", f"/{kind.collection}", {"id": entity_id})
