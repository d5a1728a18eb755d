"""HTTP transport for the location registry."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pylocsync._constants import USER_AGENT
from pylocsync.config import LocSyncConfig
from pylocsync.exceptions import RemoteError

_logger = logging.getLogger(__name__)


def _preview(body: bytes, limit: int) -> str:
    # Undecodable bytes are replaced.
    return body[:limit].decode("utf-8", errors="replace")


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        expect_json: bool = False,
    ) -> Any:
        ...


class HttpTransport:
    """JSON-over-HTTP transport that maps every failure to :class:`RemoteError`.

    Any status outside ``2xx`` is a failure and its body is only quoted
    in the error message, never parsed. Requests are issued exactly once.
    """

    def __init__(self, config: LocSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        expect_json: bool = False,
    ) -> Any:
        """Send one request and return the decoded JSON body when *expect_json*."""
        url = f"{self._config.base_url}{path}"
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }

        _logger.debug("%s %s (%s)", method, url, operation)
        if self._config.api_trace_enabled and payload is not None:
            _logger.debug("%s request body: %s", operation, json.dumps(payload))

        try:
            async with self._http.request(
                method,
                url,
                json=dict(payload) if payload is not None else None,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                body = await resp.read()
                if not 200 <= status < 300:
                    raise RemoteError(
                        f"HTTP {status} from {method} {path}: {_preview(body, 200)}",
                        status=status,
                        operation=operation,
                    )
        except RemoteError:
            raise
        except aiohttp.ClientError as exc:
            raise RemoteError(
                f"{operation} request to {path} failed: {exc}",
                operation=operation,
            ) from exc
        except TimeoutError as exc:
            raise RemoteError(
                f"{operation} request to {path} timed out after {self._config.request_timeout}s",
                operation=operation,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("%s response %d: %s", operation, status, _preview(body, 512))

        if not expect_json:
            return None

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RemoteError(
                f"Invalid JSON from {method} {path}: {_preview(body, 200)}",
                status=status,
                operation=operation,
            ) from exc
