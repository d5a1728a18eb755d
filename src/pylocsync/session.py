"""Operator session: the one object the UI collaborators talk to."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from pylocsync._constants import (
    MSG_DRIVER_UPDATE_FAILED,
    MSG_LOAD_FAILED,
    MSG_NO_DRIVERS,
    MSG_NOT_UNIQUE,
    MSG_SAVE_FAILED,
)
from pylocsync.client import LocationRegistryClient
from pylocsync.config import LocSyncConfig
from pylocsync.exceptions import ConflictError, RemoteError, SessionClosedError, ValidationError
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.location import Location
from pylocsync.models.marker import Marker
from pylocsync.models.selection import PendingSelection
from pylocsync.models.snapshot import LocationSnapshot
from pylocsync.polling import PollingLoop
from pylocsync.state.store import ReconciliationStore

_logger = logging.getLogger(__name__)


class LocationSession:
    """Process-scoped session wiring client, store, poller and selection.

    The map surface calls :meth:`select_location` and reads
    :meth:`markers`; the form calls :meth:`set_form` and :meth:`submit`.
    Every operator-facing failure ends up as one message in
    :attr:`error`; polling failures end up in :attr:`poll_error`.
    Neither ever propagates out of the session.

    Usage::

        async with LocationSession(LocSyncConfig.from_env()) as session:
            session.select_location(37.77, -122.42)
            session.set_form("s1", EntityKind.STORE)
            await session.submit()
    """

    def __init__(
        self,
        config: LocSyncConfig | None = None,
        *,
        client: LocationRegistryClient | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        if config is None:
            config = client.config if client is not None else LocSyncConfig()
        self._config = config
        self._owns_client = client is None
        self._client = client or LocationRegistryClient(config, session=http_session)
        self._store = ReconciliationStore(self._client)
        self._poller = PollingLoop(
            self._client,
            self._store,
            interval=config.poll_interval,
            poll_on_start=config.poll_on_start,
            on_error=self._on_poll_error,
            on_success=self._on_poll_success,
        )
        self._selection = PendingSelection()
        self.error: str | None = None
        self.poll_error: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LocationSession:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self, *, poll: bool = True) -> None:
        if self._owns_client:
            await self._client.open()
        if poll:
            self._poller.start()

    async def close(self) -> None:
        """Stop polling, then tear down the store and the client."""
        await self._poller.stop()
        self._store.close()
        if self._owns_client:
            await self._client.close()

    @property
    def store(self) -> ReconciliationStore:
        return self._store

    @property
    def client(self) -> LocationRegistryClient:
        return self._client

    @property
    def poller(self) -> PollingLoop:
        return self._poller

    # ------------------------------------------------------------------
    # Pending selection
    # ------------------------------------------------------------------

    @property
    def selection(self) -> PendingSelection:
        return self._selection

    def select_location(self, lat: float, lng: float) -> PendingSelection:
        """Record a map click, replacing any earlier candidate location."""
        try:
            location = Location(lat=lat, lng=lng)
        except PydanticValidationError:
            self.error = f"Invalid location: ({lat}, {lng})"
            return self._selection
        self._selection = self._selection.with_location(location)
        return self._selection

    def set_form(self, entity_id: str, kind: str | EntityKind = EntityKind.STORE) -> PendingSelection:
        try:
            resolved = EntityKind.parse(kind)
        except ValueError:
            self.error = f"Unknown location type: {kind!r}"
            return self._selection
        self._selection = self._selection.with_form(entity_id, resolved)
        return self._selection

    def clear_selection(self) -> None:
        self._selection = PendingSelection(kind=self._selection.kind)

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def submit(self) -> Entity | None:
        """Submit the pending selection; returns the committed entity or ``None``.

        ``None`` with :attr:`error` unset means the registry accepted the
        write but the store discarded the result until the next poll.
        """
        selection = self._selection
        moves_driver = (
            selection.kind is EntityKind.DRIVER
            and self._store.find(EntityKind.DRIVER, selection.entity_id.strip()) is not None
        )
        try:
            entity = await self._store.submit(selection.entity_id, selection.kind, selection.location)
        except (ValidationError, SessionClosedError) as exc:
            self.error = str(exc)
            return None
        except ConflictError:
            self.error = MSG_NOT_UNIQUE
            return None
        except RemoteError as exc:
            _logger.warning("Submitting %s %r failed: %s", selection.kind.value, selection.entity_id, exc)
            self.error = MSG_DRIVER_UPDATE_FAILED if moves_driver else MSG_SAVE_FAILED
            return None

        # The registry accepted the write even when the store discarded it.
        self.error = None
        self.clear_selection()
        return entity

    async def delete(self, collection: str | EntityKind, entity_id: str) -> bool:
        """Delete an entity; returns whether the registry confirmed it."""
        try:
            kind = EntityKind.from_collection(collection)
        except ValueError as exc:
            self.error = str(exc)
            return False
        try:
            await self._store.delete(kind, entity_id)
        except SessionClosedError as exc:
            self.error = str(exc)
            return False
        except (ValidationError, RemoteError) as exc:
            _logger.warning("Deleting %s %r failed: %s", kind.value, entity_id, exc)
            self.error = f"Failed to delete {kind.value}."
            return False
        self.error = None
        return True

    async def nearest_driver(self, lat: float, lng: float) -> str | None:
        """Id of the driver nearest to ``(lat, lng)``, or ``None`` with :attr:`error` set."""
        try:
            location = Location(lat=lat, lng=lng)
        except PydanticValidationError:
            self.error = f"Invalid location: ({lat}, {lng})"
            return None
        try:
            driver_id = await self._client.nearest_driver(location)
        except SessionClosedError as exc:
            self.error = str(exc)
            return None
        except RemoteError as exc:
            _logger.warning("Nearest driver lookup failed: %s", exc)
            self.error = MSG_NO_DRIVERS if exc.status == 404 else "Failed to find nearest driver."
            return None
        self.error = None
        return driver_id

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def markers(self) -> list[Marker]:
        return self._store.markers()

    def saved_locations(self) -> list[str]:
        """One line per committed entity, e.g. ``"Store s1: (1.0, 2.0)"``."""
        return [
            f"{marker.kind.label} {marker.id}: ({marker.lat}, {marker.lng})"
            for marker in self._store.markers()
        ]

    # ------------------------------------------------------------------
    # Polling callbacks
    # ------------------------------------------------------------------

    def _on_poll_error(self, exc: Exception) -> None:
        self.poll_error = MSG_LOAD_FAILED

    def _on_poll_success(self, snapshot: LocationSnapshot) -> None:
        self.poll_error = None
