"""Periodic snapshot polling."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Protocol

from pylocsync._constants import DEFAULT_POLL_INTERVAL
from pylocsync.exceptions import RemoteError
from pylocsync.models.snapshot import LocationSnapshot
from pylocsync.state.store import ReconciliationStore

_logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    async def list_locations(self) -> LocationSnapshot:
        ...


class PollingLoop:
    """Feed ``list_locations()`` results into a store on a fixed schedule.

    A failed poll keeps whatever the store already holds, records the
    error in :attr:`last_error` and the loop carries on at the next
    scheduled tick. Ticks are aligned to the start time; when a poll
    overruns its slot the missed ticks are skipped rather than fired
    back to back.
    """

    def __init__(
        self,
        source: SnapshotSource,
        store: ReconciliationStore,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        poll_on_start: bool = True,
        on_error: Callable[[Exception], None] | None = None,
        on_success: Callable[[LocationSnapshot], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._source = source
        self._store = store
        self._interval = interval
        self._poll_on_start = poll_on_start
        self._on_error = on_error
        self._on_success = on_success
        self._task: asyncio.Task[None] | None = None
        self._last_error: Exception | None = None
        self._polls = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_error(self) -> Exception | None:
        """Error of the most recent poll, ``None`` once a poll succeeds."""
        return self._last_error

    @property
    def polls(self) -> int:
        """Number of completed poll attempts, successful or not."""
        return self._polls

    def start(self) -> None:
        """Start polling on the running event loop (no-op if already running)."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pylocsync-poll")

    async def stop(self) -> None:
        """Cancel the polling task and wait until it has finished."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Polling stopped after %d poll(s)", self._polls)

    async def poll_once(self) -> bool:
        """Run one poll; returns whether the store was refreshed."""
        try:
            snapshot = await self._source.list_locations()
        except RemoteError as exc:
            self._record_failure(exc)
            _logger.warning("Polling locations failed (status=%s): %s", exc.status, exc)
            return False
        finally:
            self._polls += 1

        if self._store.closed:
            _logger.debug("Dropping poll result for closed store")
            return False

        self._store.refresh_snapshot(snapshot)
        self._last_error = None
        if self._on_success is not None:
            try:
                self._on_success(snapshot)
            except Exception:
                _logger.debug("on_success callback failed", exc_info=True)
        return True

    def _record_failure(self, exc: Exception) -> None:
        self._last_error = exc
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception:
                _logger.debug("on_error callback failed", exc_info=True)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        if not self._poll_on_start:
            next_tick += self._interval
            await asyncio.sleep(self._interval)

        while True:
            try:
                await self.poll_once()
            except Exception as exc:
                self._record_failure(exc)
                _logger.warning("Unexpected error while polling locations", exc_info=True)

            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                skipped = int((now - next_tick) // self._interval) + 1
                _logger.debug("Poll overran its slot; skipping %d tick(s)", skipped)
                next_tick += skipped * self._interval
            await asyncio.sleep(next_tick - now)
