"""Unit tests for the Earth Engine layer service.

This module verifies:
    - The layer catalog and the recent date window,
    - Image construction for collections, fixed windows and static images,
    - Tile template extraction from getMapId results,
    - Service-account credential selection and error reporting,
    - The shared, retryable authentication handshake.

The ``ee`` module's constructors are monkeypatched with fakes, so no Earth
Engine account is needed.

See Also:
    - backend/geosearch/services/earth_engine.py for the implementation.
"""

from __future__ import annotations

import asyncio
import datetime
import json
import threading
import types
from typing import TYPE_CHECKING, Any

import pytest

from geosearch.core import config, errors
from geosearch.services import earth_engine

if TYPE_CHECKING:
    import pathlib


class FakeImage:
    """Records the chain of calls made on an Earth Engine image."""

    def __init__(self, steps: list[tuple[Any, ...]]) -> None:
        self.steps = steps
        self.vis_params: dict[str, Any] | None = None

    def filter(self, date_filter: Any) -> FakeImage:
        return FakeImage([*self.steps, ("filter", date_filter)])

    def select(self, band: str) -> FakeImage:
        return FakeImage([*self.steps, ("select", band)])

    def mean(self) -> FakeImage:
        return FakeImage([*self.steps, ("mean",)])

    def getMapId(self, vis_params: dict[str, Any]) -> dict[str, Any]:  # noqa: N802
        self.vis_params = vis_params
        return {
            "tile_fetcher": types.SimpleNamespace(
                url_format="https://earthengine.example/map/{z}/{x}/{y}"
            )
        }


@pytest.fixture
def fake_ee(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        earth_engine.ee, "Image", lambda asset: FakeImage([("image", asset)])
    )
    monkeypatch.setattr(
        earth_engine.ee,
        "ImageCollection",
        lambda asset: FakeImage([("collection", asset)]),
    )
    monkeypatch.setattr(
        earth_engine.ee,
        "Filter",
        types.SimpleNamespace(date=lambda start, end: (start, end)),
    )


def test_layer_catalog_complete() -> None:
    """Test that every layer id has a definition."""
    assert set(earth_engine.LAYER_IDS) == set(earth_engine.LAYERS)
    assert earth_engine.is_layer_id("temperature")
    assert not earth_engine.is_layer_id("soil_moisture")
    assert not earth_engine.is_layer_id(None)


def test_recent_date_range() -> None:
    """Test the recent window ends today and spans the given days."""
    start, end = earth_engine.recent_date_range(30, datetime.date(2024, 3, 31))
    assert (start, end) == ("2024-03-01", "2024-03-31")


@pytest.mark.usefixtures("fake_ee")
def test_build_image_recent_collection() -> None:
    """Test collections are filtered to the recent window and averaged."""
    image = earth_engine.build_image(
        earth_engine.LAYERS["temperature"], 30, datetime.date(2024, 3, 31)
    )
    assert image.steps == [
        ("collection", "MODIS/061/MOD11A1"),
        ("filter", ("2024-03-01", "2024-03-31")),
        ("select", "LST_Day_1km"),
        ("mean",),
    ]


@pytest.mark.usefixtures("fake_ee")
def test_build_image_fixed_window() -> None:
    """Test that night lights use their fixed year."""
    image = earth_engine.build_image(earth_engine.LAYERS["human_activity"], 30)
    assert ("filter", ("2013-01-01", "2014-01-01")) in image.steps


@pytest.mark.usefixtures("fake_ee")
def test_build_image_static() -> None:
    """Test that land use is a single static image."""
    image = earth_engine.build_image(earth_engine.LAYERS["land_use"], 30)
    assert image.steps == [
        ("image", "MODIS/051/MCD12Q1/2001_01_01"),
        ("select", "Land_Cover_Type_1"),
    ]


@pytest.mark.usefixtures("fake_ee")
def test_get_tile_template() -> None:
    """Test that the tile fetcher's URL format is returned."""
    template = earth_engine.get_tile_template("air_quality", 30)
    assert template == "https://earthengine.example/map/{z}/{x}/{y}"


def test_get_tile_template_unknown_layer() -> None:
    with pytest.raises(errors.ValidationError):
        earth_engine.get_tile_template("soil_moisture", 30)


def test_get_tile_template_without_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an empty getMapId result is an error."""

    class EmptyImage(FakeImage):
        def getMapId(self, vis_params: dict[str, Any]) -> dict[str, Any]:  # noqa: N802
            return {}

    monkeypatch.setattr(earth_engine, "build_image", lambda *_: EmptyImage([]))
    with pytest.raises(errors.GatewayError, match="did not return valid data"):
        earth_engine.get_tile_template("temperature", 30)


def test_credentials_missing() -> None:
    """Test that missing credentials are a configuration error."""
    settings = config.Settings(
        google_application_credentials=None,
        ee_private_key=None,
        ee_client_email=None,
    )
    with pytest.raises(errors.EarthEngineAuthError, match="not configured"):
        earth_engine.initialize_earth_engine(settings)


def test_credentials_from_private_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that escaped newlines in the private key are restored."""
    captured: dict[str, Any] = {}

    def fake_credentials(email: str, key_data: str) -> str:
        captured["email"] = email
        captured["key_data"] = key_data
        return "creds"

    def fake_initialize(credentials: Any, project: str | None) -> None:
        captured["credentials"] = credentials
        captured["project"] = project

    monkeypatch.setattr(earth_engine.ee, "ServiceAccountCredentials", fake_credentials)
    monkeypatch.setattr(earth_engine.ee, "Initialize", fake_initialize)
    settings = config.Settings(
        google_application_credentials=None,
        ee_private_key="-----BEGIN-----\\nABC\\n-----END-----",
        ee_client_email="robot@example.com",
        ee_project="demo",
    )
    earth_engine.initialize_earth_engine(settings)
    assert captured == {
        "email": "robot@example.com",
        "key_data": "-----BEGIN-----\nABC\n-----END-----",
        "credentials": "creds",
        "project": "demo",
    }


def test_credentials_from_key_file(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: pathlib.Path,
) -> None:
    """Test that a key file takes precedence over the key/email pair."""
    key_file = tmp_path / "key.json"
    key_file.write_text(json.dumps({"client_email": "file@example.com"}))
    captured: dict[str, Any] = {}

    def fake_credentials(email: str, key_file: str) -> str:
        captured["email"] = email
        captured["key_file"] = key_file
        return "creds"

    monkeypatch.setattr(earth_engine.ee, "ServiceAccountCredentials", fake_credentials)
    monkeypatch.setattr(earth_engine.ee, "Initialize", lambda **_: None)
    settings = config.Settings(
        google_application_credentials=key_file,
        ee_private_key="unused",
        ee_client_email="env@example.com",
    )
    earth_engine.initialize_earth_engine(settings)
    assert captured == {"email": "file@example.com", "key_file": str(key_file)}


def test_credentials_decoder_hint(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that key decoding failures explain the expected format."""

    def broken_credentials(email: str, key_data: str) -> None:
        raise ValueError("error:1E08010C:DECODER routines::unsupported")

    monkeypatch.setattr(earth_engine.ee, "ServiceAccountCredentials", broken_credentials)
    settings = config.Settings(
        google_application_credentials=None,
        ee_private_key="garbage",
        ee_client_email="robot@example.com",
    )
    with pytest.raises(errors.EarthEngineAuthError, match="SINGLE line"):
        earth_engine.initialize_earth_engine(settings)


def test_authenticator_single_flight() -> None:
    """Test that concurrent callers share one initialisation."""
    calls: list[config.Settings] = []
    release = threading.Event()

    def initializer(settings: config.Settings) -> None:
        calls.append(settings)
        release.wait(timeout=5)

    auth = earth_engine.EarthEngineAuthenticator(initializer)
    settings = config.Settings()

    async def scenario() -> None:
        waiters = [asyncio.create_task(auth.ensure(settings)) for _ in range(5)]
        await asyncio.sleep(0.05)
        assert not auth.initialized
        release.set()
        await asyncio.gather(*waiters)
        await auth.ensure(settings)

    asyncio.run(scenario())
    assert len(calls) == 1
    assert auth.initialized


def test_authenticator_retries_after_failure() -> None:
    """Test that a failed handshake is not cached."""
    attempts: list[int] = []

    def initializer(settings: config.Settings) -> None:
        attempts.append(len(attempts))
        if len(attempts) == 1:
            raise errors.EarthEngineAuthError("temporary outage")

    auth = earth_engine.EarthEngineAuthenticator(initializer)
    settings = config.Settings()

    async def scenario() -> None:
        with pytest.raises(errors.EarthEngineAuthError, match="temporary outage"):
            await auth.ensure(settings)
        assert not auth.initialized
        await auth.ensure(settings)
        await auth.ensure(settings)

    asyncio.run(scenario())
    assert attempts == [0, 1]
    assert auth.initialized


def test_tile_service_authenticates_first(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the tile service logs in before asking for tiles."""
    order: list[str] = []
    auth = earth_engine.EarthEngineAuthenticator(lambda _: order.append("auth"))

    def fake_template(layer_id: str, recent_days: int) -> str:
        order.append(f"{layer_id}:{recent_days}")
        return "https://t/{z}/{x}/{y}"

    monkeypatch.setattr(earth_engine, "get_tile_template", fake_template)
    service = earth_engine.EarthEngineTileService(
        config.Settings(ee_recent_days=7), auth=auth
    )
    template = asyncio.run(service.tile_template("precipitation"))
    assert template == "https://t/{z}/{x}/{y}"
    assert order == ["auth", "precipitation:7"]
