"""Base model and coordinate types shared by all pylocsync models."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from pylocsync._normalize import safe_float


def _coerce_coordinate(value: Any) -> Any:
    # Unparseable values pass through unchanged so pydantic reports them.
    parsed = safe_float(value)
    return value if parsed is None else parsed


Latitude = Annotated[float, BeforeValidator(_coerce_coordinate), Field(ge=-90.0, le=90.0, allow_inf_nan=False)]
"""Latitude in degrees, accepting numeric strings from the registry."""

Longitude = Annotated[float, BeforeValidator(_coerce_coordinate), Field(ge=-180.0, le=180.0, allow_inf_nan=False)]
"""Longitude in degrees, accepting numeric strings from the registry."""


class LocSyncBaseModel(BaseModel):
    """Base for pylocsync models.

    Models are immutable: collections in the state store hold these
    instances directly, so a reader can never observe a half-updated
    entity. Unknown keys sent by the registry (``_id``, ``type``) are
    ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
