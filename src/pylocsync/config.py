"""Client configuration for pylocsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pylocsync._constants import BASE_URL, DEFAULT_POLL_INTERVAL, DEFAULT_REQUEST_TIMEOUT
from pylocsync.exceptions import LocSyncConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise LocSyncConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class LocSyncConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Location registry base URL, without trailing slash.
    poll_interval : float
        Seconds between two ``/locations`` polls.
    request_timeout : float
        Total timeout in seconds for a single registry request.
    poll_on_start : bool
        Poll once immediately when the polling loop starts instead of
        waiting a full interval for the first snapshot.
    api_trace_enabled : bool
        Log request and response bodies at DEBUG level.
    """

    base_url: str = BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    poll_on_start: bool = True
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise LocSyncConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise LocSyncConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls, **overrides: Any) -> LocSyncConfig:
        """Create configuration from ``LOCSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("LOCSYNC_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        _ENV_FLOAT_MAP = {
            "LOCSYNC_POLL_INTERVAL": "poll_interval",
            "LOCSYNC_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        if "poll_on_start" not in overrides:
            config_kwargs["poll_on_start"] = _env_bool(env.get("LOCSYNC_POLL_ON_START"), True)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("LOCSYNC_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
