"""Data layer tile template endpoint.

This module exposes the endpoint the map uses to obtain an XYZ tile URL
template for one of the satellite-derived data layers. The template is
generated by Earth Engine and contains literal ``{x}``, ``{y}`` and ``{z}``
placeholders; tiles themselves are fetched by the map straight from Earth
Engine.

Example:
    Request the temperature layer:
        >>> response = client.get("/api/earthengine", params={"layer": "temperature"})
        >>> response.json()
        >>> # Returns: {"urlFormat": "https://earthengine.googleapis.com/.../{z}/{x}/{y}"}
"""

from __future__ import annotations

import logging

import fastapi
from fastapi import responses

from geosearch.core import config
from geosearch.services import earth_engine

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/earthengine", tags=["layers"])


def _get_tile_service(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> earth_engine.TileServiceProtocol:
    """Resolve the tile service dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        TileServiceProtocol implementation (EarthEngineTileService in
            production).
    """
    return earth_engine.EarthEngineTileService(settings)


@router.get("")
async def get_layer_tiles(
    layer: str | None = None,
    service: earth_engine.TileServiceProtocol = fastapi.Depends(_get_tile_service),  # noqa: B008
) -> responses.JSONResponse:
    """Return the tile URL template for a data layer.

    Args:
        layer: One of temperature, air_quality, precipitation, land_use,
            human_activity.
        service: Tile service (injected via FastAPI Depends).

    Returns:
        ``{"urlFormat": template}`` on success. A 400 response with
        ``{"error": ...}`` for an unknown layer, a 500 response with
        ``{"error": ..., "details": ...}`` when Earth Engine fails.
    """
    if not earth_engine.is_layer_id(layer):
        return responses.JSONResponse(
            {"error": "Invalid layer specified"},
            status_code=400,
        )

    try:
        url_format = await service.tile_template(str(layer))
    except Exception as e:  # reported to the caller as details
        logger.exception("Error generating Earth Engine tiles for %s", layer)
        return responses.JSONResponse(
            {
                "error": "Failed to generate map tiles.",
                "details": str(e) or "An unknown error occurred",
            },
            status_code=500,
        )

    return responses.JSONResponse({"urlFormat": url_format})
