"""Geographic point model."""

from __future__ import annotations

from pylocsync.models._base import Latitude, LocSyncBaseModel, Longitude


class Location(LocSyncBaseModel):
    """A point on the map in degrees."""

    lat: Latitude
    lng: Longitude

    def as_payload(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}
