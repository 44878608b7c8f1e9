"""Saved location API endpoints.

This module provides REST API endpoints for the saved-location collection:
listing locations (newest first), saving a new location and deleting one.
Identifiers and creation timestamps are assigned by the server.

Example:
    Save a location:
        >>> response = client.post(
        ...     "/api/locations",
        ...     json={"name": "Office", "address": "1 Main St",
        ...           "lat": 40.75, "lng": -73.99},
        ... )
        >>> location_id = response.json()["id"]

    Delete it again:
        >>> client.delete(f"/api/locations/{location_id}")
        >>> # Returns: {"success": true}
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

import fastapi
import pydantic

from geosearch.core import config
from geosearch.db import database
from geosearch.db import models as db_models

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/locations", tags=["locations"])


class LocationCreate(pydantic.BaseModel):
    """Request body for saving a location."""

    name: str = pydantic.Field(min_length=1)
    address: str = ""
    lat: float = pydantic.Field(ge=-90, le=90)
    lng: float = pydantic.Field(ge=-180, le=180)


def _get_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.LocationRepositoryProtocol:
    """Resolve the location repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        LocationRepositoryProtocol implementation
            (PostgresLocationRepository in production).
    """
    return database.get_location_repository(settings)


def _serialize(location: db_models.Location) -> dict[str, Any]:
    """Convert a Location to a JSON-ready dictionary."""
    result = dataclasses.asdict(location)
    result["created_at"] = location.created_at.isoformat()
    return result


@router.get("")
async def list_locations(
    repo: database.LocationRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List all saved locations, newest first.

    Args:
        repo: Location repository (injected via FastAPI Depends).

    Returns:
        List of location dictionaries with id, name, address, lat, lng and
        created_at.
    """
    return [_serialize(location) for location in repo.all()]


@router.post("", status_code=201)
async def create_location(
    body: LocationCreate,
    repo: database.LocationRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Save a new location.

    Args:
        body: Name, address and coordinates of the place.
        repo: Location repository (injected via FastAPI Depends).

    Returns:
        The stored location including its server-assigned id.
    """
    location = repo.add(
        db_models.Location.new(
            name=body.name,
            address=body.address,
            lat=body.lat,
            lng=body.lng,
        )
    )
    logger.info("Saved location %s (%s)", location.id, location.name)
    return _serialize(location)


@router.delete("/{location_id}")
async def delete_location(
    location_id: str,
    repo: database.LocationRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, bool]:
    """Delete a saved location.

    Raises:
        HTTPException: If the location is not found (404 status code).
    """
    if not repo.delete(location_id):
        raise fastapi.HTTPException(
            status_code=404,
            detail="Location not found",
        )

    logger.info("Deleted location %s", location_id)
    return {"success": True}
