"""Data models for saved locations.

This module defines the record persisted by the location store. A Location
is created once, when the user saves a place, and is never edited
afterwards: it can only be deleted.

Example:
    Creating a Location for a saved place:
        >>> from geosearch.db.models import Location
        >>> location = Location.new(
        ...     name="Empire State Building",
        ...     address="20 W 34th St, New York, NY 10001",
        ...     lat=40.748817,
        ...     lng=-73.985428,
        ... )
"""

from __future__ import annotations

import dataclasses
import datetime
import uuid


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


@dataclasses.dataclass(frozen=True)
class Location:
    """A named point of interest saved by the user.

    Attributes:
        id: Opaque unique identifier assigned by the store.
        name: Display name of the place.
        address: Formatted address, may be empty.
        lat: Latitude in degrees (WGS84).
        lng: Longitude in degrees (WGS84).
        created_at: Server-assigned creation timestamp, used only for
            ordering (newest first).
    """

    id: str
    name: str
    address: str
    lat: float
    lng: float
    created_at: datetime.datetime = dataclasses.field(default_factory=_utcnow)

    @classmethod
    def new(cls, name: str, address: str, lat: float, lng: float) -> Location:
        """Build a Location with a fresh identifier and timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            name=name,
            address=address,
            lat=lat,
            lng=lng,
        )
