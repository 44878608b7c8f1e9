"""Value types describing a map session's state.

All types are immutable; the session replaces them wholesale on every
transition so observers never see a half-updated value.
"""

from __future__ import annotations

import dataclasses
from typing import Literal

from geosearch.db import models as db_models

DEFAULT_CENTER = (40.749933, -73.98633)
DEFAULT_ZOOM = 10
PLACE_ZOOM = 12
DETAIL_ZOOM = 14
DEFAULT_OPACITY = 0.6


@dataclasses.dataclass(frozen=True)
class Viewport:
    """Map camera: center as (lat, lng) and integer zoom."""

    center: tuple[float, float] = DEFAULT_CENTER
    zoom: int = DEFAULT_ZOOM


@dataclasses.dataclass(frozen=True)
class Place:
    """A place picked from the autocomplete widget, not yet saved."""

    name: str
    address: str
    lat: float
    lng: float


@dataclasses.dataclass(frozen=True)
class SavedLocation:
    """A saved location picked from the list."""

    location: db_models.Location


Selection = Place | SavedLocation | None


@dataclasses.dataclass(frozen=True)
class NoLayer:
    """No data layer is shown."""


@dataclasses.dataclass(frozen=True)
class LoadingLayer:
    """A tile template for layer_id has been requested."""

    layer_id: str


@dataclasses.dataclass(frozen=True)
class ActiveLayer:
    """A data layer is displayed on the map."""

    layer_id: str
    tile_url_template: str
    opacity: float = DEFAULT_OPACITY


LayerSelection = NoLayer | LoadingLayer | ActiveLayer

AnalysisStatus = Literal["idle", "loading", "ready", "failed"]


@dataclasses.dataclass(frozen=True)
class AnalysisState:
    """Progress and result of the AI analysis.

    Attributes:
        status: Current step of the last request.
        text: Narrative of the last successful request, kept across failures.
        address: Address the narrative was written for.
        error: Message of the last failure, if the last request failed.
        presentation_open: Whether the narrative popup is shown.
    """

    status: AnalysisStatus = "idle"
    text: str | None = None
    address: str | None = None
    error: str | None = None
    presentation_open: bool = False

    @property
    def pending(self) -> bool:
        return self.status == "loading"


def clamp_opacity(value: float) -> float:
    """Clamp an opacity value to [0, 1]."""
    return min(1.0, max(0.0, float(value)))
