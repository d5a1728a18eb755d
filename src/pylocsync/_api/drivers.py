"""Driver endpoints.

Endpoints:
  - POST /updateDriverLocation
  - GET /nearest-driver
"""

from __future__ import annotations

from pylocsync._constants import NEAREST_DRIVER_PATH, UPDATE_DRIVER_LOCATION_PATH
from pylocsync._normalize import safe_str
from pylocsync._transport import Transport
from pylocsync.exceptions import RemoteError
from pylocsync.models.location import Location


async def update_driver_location(transport: Transport, entity_id: str, location: Location) -> None:
    payload = {"id": entity_id, **location.as_payload()}
    await transport.request("update_driver_location", "POST", UPDATE_DRIVER_LOCATION_PATH, payload)


async def find_nearest_driver(transport: Transport, location: Location) -> str:
    """Return the id of the driver closest to *location*.

    The registry answers 404 when no driver is within range; that
    surfaces as :class:`RemoteError` like any other non-2xx status.
    """
    body = await transport.request(
        "nearest_driver",
        "GET",
        NEAREST_DRIVER_PATH,
        location.as_payload(),
        expect_json=True,
    )
    driver_id = safe_str(body.get("driver_id")) if isinstance(body, dict) else None
    if driver_id is None:
        raise RemoteError(
            f"Missing 'driver_id' in {NEAREST_DRIVER_PATH} response",
            operation="nearest_driver",
        )
    return driver_id
