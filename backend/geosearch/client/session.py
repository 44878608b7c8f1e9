"""Map session: viewport, selection, data-layer overlay and AI analysis.

MapSession is the single source of truth for what the map shows. User
actions call its handlers, which update local state, optionally await one
gateway call, and reconcile the result with whatever the state has become in
the meantime.

Layer requests follow a last-request-wins rule. Each request takes a new
token; when a response comes back for a token that is no longer the latest,
it is discarded without touching the layer state.

The overlay on the live map is owned by the session. It is attached only on
entry to an active layer and released on every exit from it, including
session teardown, through an ExitStack that every transition closes before
attaching anything new.

Example:
    Drive a session against a headless map:
        >>> async with MapSession(
        ...     InMemoryMapHost(), layers, analysis, store
        ... ) as session:
        ...     await session.request_layer("temperature")
        ...     session.set_layer_opacity(0.3)
        ...     await session.request_layer(None)
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
from typing import TYPE_CHECKING

from geosearch.client import notifications, overlay, state
from geosearch.core import errors

if TYPE_CHECKING:
    import types
    from collections.abc import Sequence

    from geosearch.client import gateways
    from geosearch.db import models as db_models

logger = logging.getLogger(__name__)

UNNAMED_LOCATION = "Unnamed location"


class MapSession:
    """State and lifecycle of one mounted map view.

    Attributes:
        viewport: Current camera.
        selection: Highlighted place or saved location, if any.
        search_text: Display value of the address search input.
        locations: Saved locations, newest first.
        layer: Current data-layer state.
        analysis: Progress and result of the AI analysis.
    """

    def __init__(
        self,
        map_host: overlay.MapHost,
        layers: gateways.LayerGateway,
        analysis: gateways.AnalysisGateway,
        store: gateways.LocationStore,
        notifier: notifications.Notifier | None = None,
    ) -> None:
        self._map = map_host
        self._layers = layers
        self._analysis = analysis
        self._store = store
        self.notifier = notifier or notifications.NoticeLog()

        self.viewport = state.Viewport()
        self.selection: state.Selection = None
        self.search_text = ""
        self.locations: list[db_models.Location] = []
        self.layer: state.LayerSelection = state.NoLayer()
        self.analysis = state.AnalysisState()

        self._opacity = state.DEFAULT_OPACITY
        self._overlay: overlay.TileOverlay | None = None
        self._overlay_scope = contextlib.ExitStack()
        self._subscriptions = contextlib.ExitStack()
        self._layer_request = 0
        self._closed = False

    async def __aenter__(self) -> MapSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Tear the session down, releasing the overlay and listeners."""
        self._closed = True
        self._layer_request += 1
        try:
            self._overlay_scope.close()
            self.layer = state.NoLayer()
        finally:
            self._subscriptions.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_overlay(self) -> overlay.TileOverlay | None:
        """The overlay currently attached to the map, if any."""
        return self._overlay

    @property
    def layer_loading(self) -> bool:
        return isinstance(self.layer, state.LoadingLayer)

    @property
    def marker_position(self) -> tuple[float, float] | None:
        selection = self.selection
        if isinstance(selection, state.Place):
            return selection.lat, selection.lng
        if isinstance(selection, state.SavedLocation):
            return selection.location.lat, selection.location.lng
        return None

    @property
    def selected_address(self) -> str | None:
        selection = self.selection
        if isinstance(selection, state.Place):
            return selection.address
        if isinstance(selection, state.SavedLocation):
            return selection.location.address
        return None

    def bind_place_resolver(self, resolver: gateways.PlaceResolver) -> None:
        """Follow the places widget until the session closes."""
        self._subscriptions.callback(resolver.on_select(self.select_place))

    # Selection and camera

    def select_place(self, place: state.Place) -> None:
        self.selection = place
        self.viewport = state.Viewport((place.lat, place.lng), state.PLACE_ZOOM)

    def select_saved_location(self, location: db_models.Location) -> None:
        self.selection = state.SavedLocation(location)
        self.viewport = state.Viewport(
            (location.lat, location.lng), state.DETAIL_ZOOM
        )
        self.search_text = location.name

    def on_camera_changed(self, center: tuple[float, float], zoom: float) -> None:
        self.viewport = state.Viewport(
            (float(center[0]), float(center[1])), int(round(zoom))
        )

    # Data layers

    async def request_layer(self, layer_id: str | None) -> state.LayerSelection:
        """Show a data layer, or none.

        Args:
            layer_id: Layer to show; None removes the current layer.

        Returns:
            The layer state once this request has been reconciled.
        """
        self._layer_request += 1
        token = self._layer_request

        if layer_id is None:
            self._set_layer(state.NoLayer())
            return self.layer

        self._set_layer(state.LoadingLayer(layer_id))
        try:
            try:
                url = await self._layers.fetch_tile_template(layer_id)
            except asyncio.CancelledError:
                if not self._closed and token == self._layer_request:
                    self._set_layer(state.NoLayer())
                raise
            except errors.GatewayError as e:
                self._check_current(token, layer_id)
                self._set_layer(state.NoLayer())
                self._notify_error("Error loading layer", str(e))
                return self.layer
            self._check_current(token, layer_id)
        except errors.StaleResponseError:
            logger.debug("Discarding stale response for layer %s", layer_id)
            return self.layer

        self._set_layer(state.ActiveLayer(layer_id, url, self._opacity))
        return self.layer

    def set_layer_opacity(self, value: float) -> float:
        """Change the active layer's opacity in place.

        Returns:
            The clamped opacity.

        Raises:
            ValidationError: If no layer is active.
        """
        if not isinstance(self.layer, state.ActiveLayer):
            raise errors.ValidationError("No active layer to change opacity of.")

        opacity = state.clamp_opacity(value)
        self._opacity = opacity
        self.layer = dataclasses.replace(self.layer, opacity=opacity)
        if self._overlay is not None:
            self._overlay.set_opacity(opacity)
        return opacity

    def _check_current(self, token: int, layer_id: str) -> None:
        if self._closed or token != self._layer_request:
            raise errors.StaleResponseError(layer_id)

    def _set_layer(self, new: state.LayerSelection) -> None:
        # Every transition releases the current overlay before anything else.
        self._overlay_scope.close()
        self.layer = new
        if isinstance(new, state.ActiveLayer):
            attached = self._map.attach_overlay(
                overlay.OverlaySpec(new.tile_url_template, opacity=new.opacity)
            )
            self._overlay = attached
            self._overlay_scope.callback(self._release_overlay, attached)

    def _release_overlay(self, attached: overlay.TileOverlay) -> None:
        if self._overlay is attached:
            self._overlay = None
        self._map.detach_overlay(attached)

    # AI analysis

    async def request_analysis(
        self,
        address: str | None,
        indicator_names: Sequence[str],
    ) -> bool:
        """Ask for the AI narrative of an address.

        Returns:
            True if a narrative was received and the presentation opened.
        """
        try:
            self._validate_analysis(address, indicator_names)
        except errors.ValidationError as e:
            logger.info("Analysis not requested: %s", e)
            return False

        previous = self.analysis
        self.analysis = dataclasses.replace(previous, status="loading", error=None)
        try:
            text = await self._analysis.generate(str(address), list(indicator_names))
        except asyncio.CancelledError:
            self.analysis = previous
            raise
        except errors.GatewayError as e:
            message = str(e)
            if isinstance(e, errors.ContentBlockedError) and e.block_reason:
                if e.block_reason not in message:
                    message = f"{message} Reason: {e.block_reason}."
            self.analysis = dataclasses.replace(
                previous,
                status="failed",
                error=message,
                presentation_open=False,
            )
            self._notify_error("Analysis failed", message)
            return False

        self.analysis = state.AnalysisState(
            status="ready",
            text=text,
            address=address,
            presentation_open=True,
        )
        return True

    def _validate_analysis(
        self,
        address: str | None,
        indicator_names: Sequence[str],
    ) -> None:
        if self.analysis.pending:
            raise errors.ValidationError("An analysis is already in progress.")
        if not address or not address.strip():
            raise errors.ValidationError("An address is required.")
        if not indicator_names:
            raise errors.ValidationError("At least one indicator is required.")

    def close_analysis(self) -> None:
        self.analysis = dataclasses.replace(self.analysis, presentation_open=False)

    # Saved locations

    async def load_locations(self) -> list[db_models.Location]:
        try:
            self.locations = list(await self._store.list())
        except errors.GatewayError as e:
            self._notify_error("Error loading locations", str(e))
        return self.locations

    async def save_current_selection(self) -> db_models.Location | None:
        """Save the selected place.

        Returns:
            The stored location, or None if nothing was saved.
        """
        place = self.selection
        if not isinstance(place, state.Place):
            logger.debug("Nothing to save: no place selected")
            return None

        try:
            location = await self._store.create(
                place.name or UNNAMED_LOCATION,
                place.address or "",
                place.lat,
                place.lng,
            )
        except errors.GatewayError as e:
            self._notify_error("Error saving location", str(e))
            return None

        self.locations = [location, *self.locations]
        if self.selection == place:
            self.selection = None
            self.search_text = ""
        self.notifier.notify(
            notifications.Notice("Location saved", f"{location.name} was saved.")
        )
        return location

    async def delete_saved_location(self, location_id: str) -> bool:
        try:
            await self._store.delete(location_id)
        except errors.GatewayError as e:
            self._notify_error("Error deleting location", str(e))
            return False

        name = next(
            (loc.name for loc in self.locations if loc.id == location_id),
            location_id,
        )
        self.locations = [loc for loc in self.locations if loc.id != location_id]
        selection = self.selection
        if (
            isinstance(selection, state.SavedLocation)
            and selection.location.id == location_id
        ):
            self.selection = None
            self.search_text = ""
        self.notifier.notify(
            notifications.Notice("Location deleted", f"{name} was removed.")
        )
        return True

    def _notify_error(self, title: str, description: str) -> None:
        self.notifier.notify(
            notifications.Notice(title, description, destructive=True)
        )
