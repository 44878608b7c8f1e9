"""Collaborators of the map session and their HTTP implementations.

The session depends only on the protocols defined here. The Http*
implementations talk to the GeoSearch backend with httpx; every non-2xx
response or transport failure is turned into a GatewayError carrying the
most helpful message the backend returned.

Example:
    Build gateways for a running backend:
        >>> client = create_http_client(get_settings())
        >>> layers = HttpLayerGateway(client)
        >>> template = await layers.fetch_tile_template("precipitation")
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from geosearch.client import state
from geosearch.core import errors
from geosearch.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from geosearch.core import config

logger = logging.getLogger(__name__)


class LocationStore(Protocol):
    """Saved-location collection."""

    async def create(
        self, name: str, address: str, lat: float, lng: float
    ) -> db_models.Location: ...

    async def list(self) -> list[db_models.Location]: ...

    async def delete(self, location_id: str) -> None: ...


class LayerGateway(Protocol):
    """Resolves a data layer to a tile URL template."""

    async def fetch_tile_template(self, layer_id: str) -> str: ...


class AnalysisGateway(Protocol):
    """Produces the AI narrative for an address."""

    async def generate(self, address: str, indicators: Sequence[str]) -> str: ...


class PlaceResolver(Protocol):
    """Autocomplete widget emitting places with resolved geometry."""

    def on_select(
        self, callback: Callable[[state.Place], None]
    ) -> Callable[[], None]: ...


def create_http_client(settings: config.Settings) -> httpx.AsyncClient:
    """Create the shared HTTP client for the backend gateways."""
    return httpx.AsyncClient(
        base_url=str(settings.api_base_url),
        timeout=settings.request_timeout_seconds,
    )


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    try:
        return await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("%s %s failed: %s", method, url, e)
        raise errors.GatewayError(str(e) or type(e).__name__) from e


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def location_from_json(data: Mapping[str, Any]) -> db_models.Location:
    """Build a Location from its API representation."""
    created_at = data.get("created_at")
    extra = {}
    if created_at:
        extra["created_at"] = datetime.datetime.fromisoformat(str(created_at))
    return db_models.Location(
        id=str(data["id"]),
        name=str(data["name"]),
        address=str(data.get("address") or ""),
        lat=float(data["lat"]),
        lng=float(data["lng"]),
        **extra,
    )


INVALID_LOCATION_RESPONSE = "Invalid response from the location store."


def _parse_locations(response: httpx.Response, many: bool) -> Any:
    try:
        data = response.json()
        if many:
            return [location_from_json(item) for item in data]
        return location_from_json(data)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Unreadable location response: %s", e)
        raise errors.GatewayError(
            INVALID_LOCATION_RESPONSE, status_code=response.status_code
        ) from e


class HttpLocationStore(LocationStore):
    """Saved locations stored by the backend's /api/locations endpoints."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def create(
        self, name: str, address: str, lat: float, lng: float
    ) -> db_models.Location:
        response = await _send(
            self._client,
            "POST",
            "/api/locations",
            json={"name": name, "address": address, "lat": lat, "lng": lng},
        )
        if not response.is_success:
            raise errors.GatewayError(
                "Failed to save location.", status_code=response.status_code
            )
        return _parse_locations(response, many=False)

    async def list(self) -> list[db_models.Location]:
        response = await _send(self._client, "GET", "/api/locations")
        if not response.is_success:
            raise errors.GatewayError(
                "Failed to load locations.", status_code=response.status_code
            )
        return _parse_locations(response, many=True)

    async def delete(self, location_id: str) -> None:
        response = await _send(
            self._client, "DELETE", f"/api/locations/{location_id}"
        )
        if not response.is_success:
            detail = _json_body(response).get("detail")
            raise errors.GatewayError(
                str(detail) if detail else "Failed to delete location.",
                status_code=response.status_code,
            )


class HttpLayerGateway(LayerGateway):
    """Tile templates from the backend's /api/earthengine endpoint."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch_tile_template(self, layer_id: str) -> str:
        """Return the tile URL template for layer_id.

        Raises:
            GatewayError: With the backend's ``details`` message when it
                sent one, else the response status line.
        """
        response = await _send(
            self._client, "GET", "/api/earthengine", params={"layer": layer_id}
        )
        data = _json_body(response)
        if not response.is_success:
            raise errors.GatewayError(
                str(data.get("details") or _status_line(response)),
                status_code=response.status_code,
            )

        url_format = data.get("urlFormat")
        if not url_format:
            raise errors.GatewayError("The response carried no tile URL.")
        return str(url_format)


class HttpAnalysisGateway(AnalysisGateway):
    """AI narratives from the backend's /api/analysis endpoint."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def generate(self, address: str, indicators: Sequence[str]) -> str:
        """Return the narrative for address.

        Raises:
            ContentBlockedError: If the model refused the request.
            GatewayError: For any other failure, with the backend's message.
        """
        response = await _send(
            self._client,
            "POST",
            "/api/analysis",
            json={"address": address, "indicators": list(indicators)},
        )
        data = _json_body(response)
        if response.is_success and data.get("success"):
            return str(data.get("analysis") or "")

        message = str(
            data.get("message")
            or f"The API responded with an error: {response.status_code}"
        )
        block_reason = data.get("blockReason")
        if block_reason:
            raise errors.ContentBlockedError(
                message,
                block_reason=str(block_reason),
                status_code=response.status_code,
            )
        raise errors.GatewayError(message, status_code=response.status_code)


def place_from_result(result: Mapping[str, Any]) -> state.Place | None:
    """Convert a raw places result, None if it has no resolved geometry."""
    geometry = result.get("geometry") or {}
    location = geometry.get("location")
    if not location:
        return None
    return state.Place(
        name=str(result.get("name") or ""),
        address=str(result.get("formatted_address") or ""),
        lat=float(location["lat"]),
        lng=float(location["lng"]),
    )


class AutocompletePlaceResolver(PlaceResolver):
    """Adapter for the places autocomplete widget's ``place_changed`` event."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[state.Place], None]] = []

    def on_select(
        self, callback: Callable[[state.Place], None]
    ) -> Callable[[], None]:
        """Register a listener; the returned callable removes it."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def handle_place_changed(self, result: Mapping[str, Any]) -> state.Place | None:
        """Forward a widget result to the listeners if it has geometry."""
        place = place_from_result(result)
        if place is None:
            logger.debug("Ignoring place without geometry: %s", result.get("name"))
            return None
        for listener in list(self._listeners):
            listener(place)
        return place
