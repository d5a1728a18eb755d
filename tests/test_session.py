"""Operator-facing behaviour of LocationSession over a scripted transport."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any

import pytest
import pytest_asyncio
from conftest import ScriptedTransport

from pylocsync._constants import (
    MSG_DRIVER_UPDATE_FAILED,
    MSG_LOAD_FAILED,
    MSG_NO_DRIVERS,
    MSG_NOT_UNIQUE,
    MSG_REQUIRED,
    MSG_SAVE_FAILED,
)
from pylocsync.client import LocationRegistryClient
from pylocsync.exceptions import RemoteError
from pylocsync.models.entity import EntityKind
from pylocsync.models.location import Location
from pylocsync.session import LocationSession

_LOCATIONS = {
    "stores": [{"id": "s1", "lat": 1.0, "lng": 2.0}],
    "deliveries": [{"id": "p1", "lat": 3.0, "lng": 4.0}],
    "drivers": [{"id": "d1", "lat": 5.0, "lng": 6.0}],
}


@pytest.fixture
def transport() -> ScriptedTransport:
    scripted = ScriptedTransport()
    scripted.responses[("GET", "/locations")] = _LOCATIONS
    return scripted


@pytest_asyncio.fixture
async def session(transport: ScriptedTransport) -> AsyncIterator[LocationSession]:
    session = LocationSession(client=LocationRegistryClient(transport=transport))
    await session.start(poll=False)
    await session.poller.poll_once()
    yield session
    await session.close()


def _writes(transport: ScriptedTransport) -> list[tuple[str, str, str, dict | None]]:
    return [r for r in transport.requests if r[1] != "GET"]


# ------------------------------------------------------------------
# Selection
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_map_click_replaces_candidate(session: LocationSession) -> None:
    session.select_location(1, 1)
    session.select_location(7, 8)

    assert session.selection.location == Location(lat=7, lng=8)


@pytest.mark.asyncio
async def test_invalid_click_keeps_previous_candidate(session: LocationSession) -> None:
    session.select_location(1, 1)
    session.select_location(123, 0)

    assert session.selection.location == Location(lat=1, lng=1)
    assert session.error is not None


@pytest.mark.asyncio
async def test_set_form_accepts_type_strings(session: LocationSession) -> None:
    session.set_form("x", " Driver ")
    assert session.selection.kind is EntityKind.DRIVER

    session.set_form("x", "lorry")
    assert session.selection.kind is EntityKind.DRIVER
    assert "lorry" in (session.error or "")


# ------------------------------------------------------------------
# Submit
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_success_clears_selection(session: LocationSession, transport: ScriptedTransport) -> None:
    session.select_location(10, 20)
    session.set_form("s2", EntityKind.STORE)

    entity = await session.submit()

    assert entity is not None and entity.id == "s2"
    assert session.error is None
    assert session.selection.location is None
    assert session.selection.entity_id == ""
    assert [e.id for e in session.store.stores] == ["s1", "s2"]
    assert _writes(transport) == [
        ("create", "POST", "/addLocation", {"id": "s2", "type": "store", "lat": 10.0, "lng": 20.0})
    ]


@pytest.mark.asyncio
async def test_submit_without_location(session: LocationSession, transport: ScriptedTransport) -> None:
    session.set_form("s2", EntityKind.STORE)

    assert await session.submit() is None
    assert session.error == MSG_REQUIRED
    assert _writes(transport) == []


@pytest.mark.asyncio
async def test_submit_duplicate_shared_id(session: LocationSession, transport: ScriptedTransport) -> None:
    session.select_location(10, 20)
    session.set_form("s1", EntityKind.DELIVERY)

    assert await session.submit() is None
    assert session.error == MSG_NOT_UNIQUE
    assert session.selection.entity_id == "s1"
    assert _writes(transport) == []


@pytest.mark.asyncio
async def test_submit_moves_existing_driver(session: LocationSession, transport: ScriptedTransport) -> None:
    session.select_location(9, 9)
    session.set_form("d1", "driver")

    entity = await session.submit()

    assert entity is not None
    assert [(e.id, e.lat) for e in session.store.drivers] == [("d1", 9.0)]
    assert _writes(transport) == [
        ("update_driver_location", "POST", "/updateDriverLocation", {"id": "d1", "lat": 9.0, "lng": 9.0})
    ]


@pytest.mark.asyncio
async def test_failed_save_keeps_selection(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("POST", "/addLocation")] = RemoteError("HTTP 500", status=500, operation="create")
    session.select_location(10, 20)
    session.set_form("s2", EntityKind.STORE)

    assert await session.submit() is None

    assert session.error == MSG_SAVE_FAILED
    assert session.selection.location == Location(lat=10, lng=20)
    assert [e.id for e in session.store.stores] == ["s1"]


@pytest.mark.asyncio
async def test_failed_driver_move_message(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("POST", "/updateDriverLocation")] = RemoteError(
        "HTTP 500", status=500, operation="update_driver_location"
    )
    session.select_location(9, 9)
    session.set_form("d1", EntityKind.DRIVER)

    assert await session.submit() is None
    assert session.error == MSG_DRIVER_UPDATE_FAILED
    assert session.store.drivers[0].lat == 5.0


@pytest.mark.asyncio
async def test_success_clears_previous_error(session: LocationSession) -> None:
    session.set_form("s9", EntityKind.STORE)
    await session.submit()
    assert session.error is not None

    session.select_location(0, 0)
    assert await session.submit() is not None
    assert session.error is None


# ------------------------------------------------------------------
# Delete / nearest driver
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete(session: LocationSession, transport: ScriptedTransport) -> None:
    assert await session.delete("deliveries", "p1")

    assert session.store.deliveries == ()
    assert _writes(transport) == [("delete", "DELETE", "/deliveries", {"id": "p1"})]


@pytest.mark.asyncio
async def test_delete_failure(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("DELETE", "/stores")] = RemoteError("HTTP 404", status=404, operation="delete")

    assert not await session.delete("stores", "s1")
    assert session.error == "Failed to delete store."
    assert [e.id for e in session.store.stores] == ["s1"]


@pytest.mark.asyncio
async def test_delete_unknown_collection(session: LocationSession, transport: ScriptedTransport) -> None:
    assert not await session.delete("warehouses", "s1")
    assert session.error is not None
    assert _writes(transport) == []


@pytest.mark.asyncio
async def test_nearest_driver(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("GET", "/nearest-driver")] = {"driver_id": "d1"}

    assert await session.nearest_driver(5, 6) == "d1"
    assert transport.requests[-1] == ("nearest_driver", "GET", "/nearest-driver", {"lat": 5.0, "lng": 6.0})


@pytest.mark.asyncio
async def test_nearest_driver_none_found(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("GET", "/nearest-driver")] = RemoteError(
        "HTTP 404", status=404, operation="nearest_driver"
    )

    assert await session.nearest_driver(5, 6) is None
    assert session.error == MSG_NO_DRIVERS


# ------------------------------------------------------------------
# Polling banner / rendering
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_poll_failure_banner(session: LocationSession, transport: ScriptedTransport) -> None:
    transport.responses[("GET", "/locations")] = RemoteError("HTTP 502", status=502, operation="list")

    await session.poller.poll_once()
    assert session.poll_error == MSG_LOAD_FAILED
    assert [e.id for e in session.store.stores] == ["s1"]

    transport.responses[("GET", "/locations")] = _LOCATIONS
    await session.poller.poll_once()
    assert session.poll_error is None


@pytest.mark.asyncio
async def test_saved_locations_and_markers(session: LocationSession) -> None:
    assert session.saved_locations() == [
        "Store s1: (1.0, 2.0)",
        "Delivery p1: (3.0, 4.0)",
        "Driver d1: (5.0, 6.0)",
    ]
    assert [m.icon for m in session.markers()] == ["store-icon.png", "delivery-icon.png", "driver-icon.png"]


@pytest.mark.asyncio
async def test_close_rejects_later_submits(transport: ScriptedTransport) -> None:
    session = LocationSession(client=LocationRegistryClient(transport=transport))
    await session.start(poll=False)
    await session.close()

    session.select_location(0, 0)
    session.set_form("s5", EntityKind.STORE)

    assert await session.submit() is None
    assert session.error is not None
    assert _writes(transport) == []


class _RacingTransport(ScriptedTransport):
    """Lets a poll put the id into the other shared collection during the create."""

    session: LocationSession | None = None

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        expect_json: bool = False,
    ) -> Any:
        result = await super().request(operation, method, path, payload, expect_json=expect_json)
        if operation == "create" and self.session is not None and payload is not None:
            self.session.store.refresh(stores=[{"id": payload["id"], "lat": 0, "lng": 0}])
        return result


@pytest.mark.asyncio
async def test_accepted_write_discarded_locally_is_not_an_error() -> None:
    transport = _RacingTransport()
    session = LocationSession(client=LocationRegistryClient(transport=transport))
    transport.session = session
    await session.start(poll=False)
    try:
        session.select_location(1, 2)
        session.set_form("x", EntityKind.DELIVERY)

        assert await session.submit() is None

        assert session.error is None
        assert session.selection.location is None
        assert session.store.deliveries == ()
        assert [e.id for e in session.store.stores] == ["x"]
    finally:
        await session.close()
