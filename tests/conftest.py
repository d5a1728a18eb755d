from __future__ import annotations

import asyncio
import contextlib
import math
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pylocsync.config import LocSyncConfig
from pylocsync.exceptions import RemoteError
from pylocsync.models.entity import Entity, EntityKind
from pylocsync.models.location import Location


@dataclass
class FakeRegistry:
    """In-memory write side of the registry used by store tests."""

    calls: list[tuple[str, ...]] = field(default_factory=list)
    fail_status: int | None = None
    gate: asyncio.Event | None = None

    async def _finish(self, operation: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_status is not None:
            raise RemoteError(f"HTTP {self.fail_status}", status=self.fail_status, operation=operation)

    async def create(self, entity: Entity) -> None:
        self.calls.append(("create", entity.kind.value, entity.id))
        await self._finish("create")

    async def update_driver_location(self, entity_id: str, location: Location) -> None:
        self.calls.append(("update_driver_location", entity_id))
        await self._finish("update_driver_location")

    async def delete(self, collection: str | EntityKind, entity_id: str) -> None:
        kind = EntityKind.from_collection(collection)
        self.calls.append(("delete", kind.collection, entity_id))
        await self._finish("delete")


class ScriptedTransport:
    """Transport double answering by ``(method, path)``.

    A scripted value that is an exception is raised instead of returned.
    """

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], Any] = {}
        self.requests: list[tuple[str, str, str, dict[str, Any] | None]] = []

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        expect_json: bool = False,
    ) -> Any:
        self.requests.append((operation, method, path, dict(payload) if payload is not None else None))
        result = self.responses.get((method, path))
        if isinstance(result, Exception):
            raise result
        return result


@dataclass
class RegistryBackend:
    """Minimal location registry served by ``aiohttp.web``."""

    collections: dict[str, dict[str, dict[str, Any]]] = field(
        default_factory=lambda: {kind.collection: {} for kind in EntityKind}
    )
    calls: list[tuple[str, str, Any]] = field(default_factory=list)
    fail: dict[str, int] = field(default_factory=dict)
    raw: dict[str, tuple[int, bytes]] = field(default_factory=dict)
    locations_body: Any = None
    locations_text: str | None = None

    def seed(self, kind: EntityKind, entity_id: str, lat: float, lng: float) -> None:
        self.collections[kind.collection][entity_id] = {"id": entity_id, "lat": lat, "lng": lng}

    def ids(self, kind: EntityKind) -> list[str]:
        return list(self.collections[kind.collection])

    def app(self) -> web.Application:
        @web.middleware
        async def _record_and_fail(request: web.Request, handler: Callable[..., Any]) -> web.StreamResponse:
            body = await request.json() if request.can_read_body else None
            self.calls.append((request.method, request.path, body))
            status = self.fail.get(request.path)
            if status is not None:
                return web.json_response({"error": "injected failure"}, status=status)
            if request.path in self.raw:
                raw_status, raw_body = self.raw[request.path]
                return web.Response(status=raw_status, body=raw_body, content_type="text/plain")
            return await handler(request)

        app = web.Application(middlewares=[_record_and_fail])
        app.router.add_get("/locations", self._list)
        app.router.add_post("/addLocation", self._add)
        app.router.add_post("/updateDriverLocation", self._update_driver)
        app.router.add_get("/nearest-driver", self._nearest_driver)
        for kind in EntityKind:
            app.router.add_delete(f"/{kind.collection}", self._delete_handler(kind))
        return app

    async def _list(self, _request: web.Request) -> web.StreamResponse:
        if self.locations_text is not None:
            return web.Response(text=self.locations_text, content_type="text/plain")
        if self.locations_body is not None:
            return web.json_response(self.locations_body)
        return web.json_response({name: list(docs.values()) for name, docs in self.collections.items()})

    async def _add(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        kind = EntityKind(body["type"])
        if kind.shares_namespace and any(
            body["id"] in self.collections[other.collection] for other in EntityKind if other.shares_namespace
        ):
            return web.json_response({"error": "ID already exists for another entity"}, status=400)
        self.seed(kind, body["id"], body["lat"], body["lng"])
        return web.json_response({"message": "Location added"})

    async def _update_driver(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        self.seed(EntityKind.DRIVER, body["id"], body["lat"], body["lng"])
        return web.json_response({"message": "Driver added/updated"})

    async def _nearest_driver(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        drivers = list(self.collections[EntityKind.DRIVER.collection].values())
        if not drivers:
            return web.json_response({"error": "No drivers found"}, status=404)
        nearest = min(drivers, key=lambda d: math.hypot(d["lat"] - body["lat"], d["lng"] - body["lng"]))
        return web.json_response({"driver_id": nearest["id"]})

    def _delete_handler(self, kind: EntityKind) -> Callable[[web.Request], Any]:
        async def _delete(request: web.Request) -> web.StreamResponse:
            body = await request.json()
            docs = self.collections[kind.collection]
            if body["id"] not in docs:
                return web.json_response({"error": "not found"}, status=404)
            del docs[body["id"]]
            return web.json_response({"message": f"{kind.label} deleted"})

        return _delete


@contextlib.asynccontextmanager
async def serve_registry(backend: RegistryBackend, **config_overrides: Any) -> AsyncIterator[LocSyncConfig]:
    """Serve *backend* on a local port and yield a config pointing at it."""
    server = TestServer(backend.app())
    await server.start_server()
    try:
        config_kwargs: dict[str, Any] = {"base_url": str(server.make_url("")), "request_timeout": 2.0}
        config_kwargs.update(config_overrides)
        yield LocSyncConfig(**config_kwargs)
    finally:
        await server.close()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _spin() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_spin(), timeout)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def backend() -> RegistryBackend:
    return RegistryBackend()
