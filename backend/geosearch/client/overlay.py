"""Tile overlays and the map host they are attached to.

A TileOverlay renders an XYZ tile template on top of the base map. The map
itself is reached only through the MapHost protocol, so the session works
the same against a browser bridge or the headless InMemoryMapHost.

Example:
    Attach an overlay and resolve a tile URL:
        >>> host = InMemoryMapHost()
        >>> overlay = host.attach_overlay(
        ...     OverlaySpec("https://tiles/{z}/{x}/{y}.png", opacity=0.6)
        ... )
        >>> overlay.tile_url(3, 2, 5)
        'https://tiles/5/3/2.png'
        >>> host.detach_overlay(overlay)
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Protocol

logger = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_ZOOM = 18


def tile_url(template: str, x: int, y: int, z: int) -> str:
    """Substitute the ``{x}``, ``{y}`` and ``{z}`` tokens of a tile template."""
    return (
        template.replace("{x}", str(x))
        .replace("{y}", str(y))
        .replace("{z}", str(z))
    )


@dataclasses.dataclass(frozen=True)
class OverlaySpec:
    """What to render: template, tile geometry and initial opacity."""

    tile_url_template: str
    opacity: float
    tile_size: int = TILE_SIZE
    max_zoom: int = MAX_ZOOM
    name: str = "EarthEngineLayer"


class TileOverlay:
    """A tile overlay registered with a map.

    Opacity can change while the overlay stays attached; the tile template
    cannot.
    """

    def __init__(self, spec: OverlaySpec) -> None:
        self.spec = spec
        self.opacity = spec.opacity

    @property
    def tile_url_template(self) -> str:
        return self.spec.tile_url_template

    def set_opacity(self, value: float) -> None:
        self.opacity = value

    def tile_url(self, x: int, y: int, z: int) -> str | None:
        """URL for one tile, or None beyond the overlay's max zoom."""
        if z > self.spec.max_zoom:
            return None
        return tile_url(self.spec.tile_url_template, x, y, z)

    def __repr__(self) -> str:
        return (
            f"TileOverlay({self.spec.name!r}, "
            f"{self.spec.tile_url_template!r}, opacity={self.opacity})"
        )


class MapHost(Protocol):
    """The live map's overlay registry."""

    def attach_overlay(self, spec: OverlaySpec) -> TileOverlay: ...

    def detach_overlay(self, overlay: TileOverlay) -> None: ...


class InMemoryMapHost(MapHost):
    """Headless map keeping overlays in draw order.

    Counts attach and detach calls so callers can check that every overlay
    that was attached has been released.
    """

    def __init__(self) -> None:
        self.overlay_map_types: list[TileOverlay] = []
        self.attach_count = 0
        self.detach_count = 0

    def attach_overlay(self, spec: OverlaySpec) -> TileOverlay:
        overlay = TileOverlay(spec)
        self.overlay_map_types.append(overlay)
        self.attach_count += 1
        logger.debug("Attached %r", overlay)
        return overlay

    def detach_overlay(self, overlay: TileOverlay) -> None:
        # Removing an overlay that is already gone is a no-op.
        if overlay in self.overlay_map_types:
            self.overlay_map_types.remove(overlay)
        self.detach_count += 1
        logger.debug("Detached %r", overlay)

    def render_tiles(
        self,
        tiles: list[tuple[int, int, int]],
    ) -> list[str]:
        """URLs every attached overlay requests for the given (x, y, z) tiles."""
        urls = []
        for overlay in self.overlay_map_types:
            for x, y, z in tiles:
                url = overlay.tile_url(x, y, z)
                if url is not None:
                    urls.append(url)
        return urls
