"""pylocsync - Async client-side sync for a geo-tagged location registry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylocsync")
except PackageNotFoundError:
    __version__ = "0+local"

from pylocsync.client import LocationRegistryClient
from pylocsync.config import LocSyncConfig
from pylocsync.exceptions import (
    ConflictError,
    LocSyncConfigError,
    LocSyncError,
    RemoteError,
    SessionClosedError,
    ValidationError,
)
from pylocsync.models import (
    Entity,
    EntityKind,
    Location,
    LocationSnapshot,
    Marker,
    PendingSelection,
)
from pylocsync.polling import PollingLoop
from pylocsync.session import LocationSession
from pylocsync.state.store import ReconciliationStore

__all__ = [
    "__version__",
    "ConflictError",
    "Entity",
    "EntityKind",
    "LocSyncConfig",
    "LocSyncConfigError",
    "LocSyncError",
    "Location",
    "LocationRegistryClient",
    "LocationSession",
    "LocationSnapshot",
    "Marker",
    "PendingSelection",
    "PollingLoop",
    "ReconciliationStore",
    "RemoteError",
    "SessionClosedError",
    "ValidationError",
]
