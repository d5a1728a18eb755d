"""In-memory reconciliation store for the three location collections.

This is the only component allowed to change the collections. Two
sources feed it:

* full snapshots from polling (:meth:`ReconciliationStore.refresh`),
  which always win;
* operator mutations (:meth:`ReconciliationStore.submit`,
  :meth:`ReconciliationStore.delete`), which are written to the
  registry first and committed locally only once the registry confirms.

Every commit swaps in freshly built tuples of frozen entities, so any
reader sees either the previous or the next committed state.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from pylocsync._constants import MSG_NOT_UNIQUE, MSG_REQUIRED
from pylocsync._normalize import safe_str
from pylocsync.exceptions import ConflictError, SessionClosedError, ValidationError
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.location import Location
from pylocsync.models.marker import Marker
from pylocsync.models.snapshot import LocationSnapshot, parse_entities

_logger = logging.getLogger(__name__)

Collections = dict[EntityKind, tuple[Entity, ...]]
StoreListener = Callable[["ReconciliationStore"], None]


class LocationRegistry(Protocol):
    """Write side of the registry, as used by the store.

    :class:`~pylocsync.client.LocationRegistryClient` implements it;
    tests pass in-memory doubles.
    """

    async def create(self, entity: Entity) -> None:
        ...

    async def update_driver_location(self, entity_id: str, location: Location) -> None:
        ...

    async def delete(self, collection: str | EntityKind, entity_id: str) -> None:
        ...


def _empty_collections() -> Collections:
    return {kind: () for kind in EntityKind}


def _enforce_unique_ids(collections: Collections) -> Collections:
    """Drop repeated ids so the namespace rules hold.

    Stores are scanned before deliveries, so on a cross-collection clash
    the store survives. Drivers have their own namespace.
    """
    shared_seen: set[str] = set()
    result: Collections = {}
    for kind in EntityKind:
        seen = shared_seen if kind.shares_namespace else set()
        kept: list[Entity] = []
        for entity in collections.get(kind, ()):
            if entity.id in seen:
                _logger.warning("Dropping duplicate %s id=%s from snapshot", kind.value, entity.id)
                continue
            seen.add(entity.id)
            kept.append(entity)
        result[kind] = tuple(kept)
    return result


def _upsert(collection: tuple[Entity, ...], entity: Entity) -> tuple[Entity, ...]:
    """Replace the entity with the same id in place, or append it."""
    replaced = False
    updated: list[Entity] = []
    for existing in collection:
        if existing.id == entity.id:
            updated.append(entity)
            replaced = True
        else:
            updated.append(existing)
    if not replaced:
        updated.append(entity)
    return tuple(updated)


def _validate_submission(entity_id: Any, kind: Any, location: Any) -> tuple[str, EntityKind, Location]:
    normalized_id = safe_str(entity_id) if isinstance(entity_id, str) else None
    if normalized_id is None or location is None:
        raise ValidationError(MSG_REQUIRED)

    try:
        resolved_kind = EntityKind.parse(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown location type: {kind!r}") from exc

    if isinstance(location, Location):
        return normalized_id, resolved_kind, location
    if not isinstance(location, Mapping):
        raise ValidationError(f"Location must have lat and lng, got {type(location).__name__}")
    try:
        return normalized_id, resolved_kind, Location.model_validate(location)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid location: {exc.error_count()} validation error(s)") from exc


class ReconciliationStore:
    """Authoritative in-memory view of stores, deliveries and drivers.

    Uniqueness rules:

    * stores and deliveries share one id namespace;
    * drivers have their own namespace, and submitting a known driver id
      moves that driver instead of creating a new one.

    ``revision`` increases on every committed change. A refresh that
    lands while a mutation is still awaiting the registry is applied
    anyway; the snapshot may predate the mutation and briefly hide it
    until the next poll.
    """

    def __init__(self, registry: LocationRegistry) -> None:
        self._registry = registry
        self._collections: Collections = _empty_collections()
        self._listeners: list[StoreListener] = []
        self._revision = 0
        self._in_flight = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def stores(self) -> tuple[Entity, ...]:
        return self._collections[EntityKind.STORE]

    @property
    def deliveries(self) -> tuple[Entity, ...]:
        return self._collections[EntityKind.DELIVERY]

    @property
    def drivers(self) -> tuple[Entity, ...]:
        return self._collections[EntityKind.DRIVER]

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def in_flight(self) -> int:
        """Mutations currently awaiting the registry."""
        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    def collection(self, kind: str | EntityKind) -> tuple[Entity, ...]:
        return self._collections[EntityKind.from_collection(kind)]

    def find(self, kind: str | EntityKind, entity_id: str) -> Entity | None:
        for entity in self.collection(kind):
            if entity.id == entity_id:
                return entity
        return None

    def snapshot(self) -> LocationSnapshot:
        return LocationSnapshot(stores=self.stores, deliveries=self.deliveries, drivers=self.drivers)

    def markers(self) -> list[Marker]:
        """Markers for every committed entity, stores first."""
        return [Marker.for_entity(entity) for kind in EntityKind for entity in self._collections[kind]]

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Call *listener* after every committed change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Snapshot refresh
    # ------------------------------------------------------------------

    def refresh(self, stores: Any = None, deliveries: Any = None, drivers: Any = None) -> bool:
        """Replace all three collections with the server's snapshot.

        Collections that are missing, ``None`` or not a list become
        empty. Returns whether anything changed.
        """
        if self._closed:
            _logger.debug("Ignoring refresh on closed store")
            return False
        if self._in_flight:
            _logger.debug("Refresh applied while %d mutation(s) in flight", self._in_flight)

        incoming: Collections = {
            EntityKind.STORE: parse_entities(EntityKind.STORE, stores),
            EntityKind.DELIVERY: parse_entities(EntityKind.DELIVERY, deliveries),
            EntityKind.DRIVER: parse_entities(EntityKind.DRIVER, drivers),
        }
        return self._commit(_enforce_unique_ids(incoming), reason="refresh")

    def refresh_snapshot(self, snapshot: LocationSnapshot) -> bool:
        return self.refresh(snapshot.stores, snapshot.deliveries, snapshot.drivers)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def submit(
        self,
        entity_id: str,
        kind: str | EntityKind,
        location: Location | Mapping[str, Any] | None,
    ) -> Entity | None:
        """Create an entity, or move a known driver.

        Raises :class:`ValidationError` or :class:`ConflictError` before
        any request is sent, and lets :class:`RemoteError` propagate with
        the collections untouched. Returns the committed entity, or
        ``None`` when the registry confirmed but the result was discarded:
        the store was closed meanwhile, or a poll put the id in the other
        shared collection. The next poll settles the latter.
        """
        self._require_open()
        entity_id, resolved_kind, resolved_location = _validate_submission(entity_id, kind, location)

        if resolved_kind is EntityKind.DRIVER and self.find(EntityKind.DRIVER, entity_id) is not None:
            with self._tracking():
                await self._registry.update_driver_location(entity_id, resolved_location)
            return self._commit_driver_location(entity_id, resolved_location)

        if self._shared_id_taken(entity_id):
            raise ConflictError(MSG_NOT_UNIQUE)

        entity = Entity.create(resolved_kind, entity_id, resolved_location)
        with self._tracking():
            await self._registry.create(entity)
        return self._commit_created(entity)

    async def delete(self, collection: str | EntityKind, entity_id: str) -> bool:
        """Delete *entity_id* from *collection* on the registry, then locally.

        The request is sent even when the id is not known locally. Returns
        whether a local entity was removed.
        """
        self._require_open()
        try:
            kind = EntityKind.from_collection(collection)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        normalized_id = safe_str(entity_id) if isinstance(entity_id, str) else None
        if normalized_id is None:
            raise ValidationError("ID is required")

        with self._tracking():
            await self._registry.delete(kind, normalized_id)

        if self._closed:
            _logger.debug("Discarding confirmed delete of %s id=%s on closed store", kind.value, normalized_id)
            return False

        current = self._collections[kind]
        remaining = tuple(entity for entity in current if entity.id != normalized_id)
        if len(remaining) == len(current):
            _logger.debug("Deleted %s id=%s was not present locally", kind.value, normalized_id)
            return False
        self._commit({**self._collections, kind: remaining}, reason=f"delete {kind.value} {normalized_id}")
        return True

    def close(self) -> None:
        """Stop accepting changes; results of in-flight calls are discarded."""
        self._closed = True
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise SessionClosedError("Store is closed")

    def _shared_id_taken(self, entity_id: str) -> bool:
        return any(
            entity.id == entity_id
            for kind in EntityKind
            if kind.shares_namespace
            for entity in self._collections[kind]
        )

    @contextlib.contextmanager
    def _tracking(self) -> Iterator[None]:
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def _commit_driver_location(self, entity_id: str, location: Location) -> Entity | None:
        if self._closed:
            _logger.debug("Discarding confirmed driver move id=%s on closed store", entity_id)
            return None
        existing = self.find(EntityKind.DRIVER, entity_id)
        if existing is not None:
            moved = existing.with_location(location)
        else:
            moved = Entity.create(EntityKind.DRIVER, entity_id, location)
        drivers = _upsert(self._collections[EntityKind.DRIVER], moved)
        self._commit({**self._collections, EntityKind.DRIVER: drivers}, reason=f"move driver {entity_id}")
        return moved

    def _commit_created(self, entity: Entity) -> Entity | None:
        if self._closed:
            _logger.debug("Discarding confirmed create of %s id=%s on closed store", entity.kind.value, entity.id)
            return None
        if entity.kind.shares_namespace:
            for sibling in EntityKind:
                if sibling is entity.kind or not sibling.shares_namespace:
                    continue
                if any(existing.id == entity.id for existing in self._collections[sibling]):
                    _logger.warning(
                        "Discarding confirmed create of %s id=%s; id is now a %s locally, next poll settles it",
                        entity.kind.value,
                        entity.id,
                        sibling.value,
                    )
                    return None
        updated = _upsert(self._collections[entity.kind], entity)
        self._commit({**self._collections, entity.kind: updated}, reason=f"create {entity.kind.value} {entity.id}")
        return entity

    def _commit(self, collections: Collections, *, reason: str) -> bool:
        if collections == self._collections:
            return False
        self._collections = collections
        self._revision += 1
        _logger.debug(
            "Committed %s revision=%d stores=%d deliveries=%d drivers=%d",
            reason,
            self._revision,
            len(collections[EntityKind.STORE]),
            len(collections[EntityKind.DELIVERY]),
            len(collections[EntityKind.DRIVER]),
        )
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.debug("Store listener failed", exc_info=True)
        return True
