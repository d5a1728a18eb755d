"""High-level async client for the location registry."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pylocsync._api import drivers as _drivers_api
from pylocsync._api import locations as _locations_api
from pylocsync._transport import HttpTransport, Transport
from pylocsync.config import LocSyncConfig
from pylocsync.exceptions import SessionClosedError
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.location import Location
from pylocsync.models.snapshot import LocationSnapshot

_logger = logging.getLogger(__name__)


class LocationRegistryClient:
    """Async client for the location registry.

    One method per remote action. Nothing is retried here: every failure
    surfaces once as :class:`~pylocsync.exceptions.RemoteError` and the
    caller decides whether to try again.

    Usage::

        async with LocationRegistryClient(config) as client:
            snapshot = await client.list_locations()
    """

    def __init__(
        self,
        config: LocSyncConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or LocSyncConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None

    @property
    def config(self) -> LocSyncConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LocationRegistryClient:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def open(self) -> None:
        if self._external_transport or self._transport is not None:
            return
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = HttpTransport(self._config, self._http_session)
        _logger.debug("Registry client opened base_url=%s", self._config.base_url)

    async def close(self) -> None:
        if not self._external_transport:
            self._transport = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise SessionClosedError(
                "Client not initialized. Use 'async with LocationRegistryClient(...) as client:'"
            )
        return self._transport

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    async def list_locations(self) -> LocationSnapshot:
        """Fetch all stores, deliveries and drivers."""
        return await _locations_api.fetch_locations(self._require_transport())

    async def create(self, entity: Entity) -> None:
        """Persist a new entity of any kind."""
        await _locations_api.add_location(self._require_transport(), entity)

    async def update_driver_location(self, entity_id: str, location: Location) -> None:
        """Move an existing driver (the registry upserts unknown ids)."""
        await _drivers_api.update_driver_location(self._require_transport(), entity_id, location)

    async def delete(self, collection: str | EntityKind, entity_id: str) -> None:
        """Delete *entity_id* from *collection* (``"stores"``, ``"deliveries"`` or ``"drivers"``)."""
        kind = EntityKind.from_collection(collection)
        await _locations_api.delete_location(self._require_transport(), kind, entity_id)

    async def nearest_driver(self, location: Location) -> str:
        """Return the id of the driver nearest to *location*."""
        return await _drivers_api.find_nearest_driver(self._require_transport(), location)
