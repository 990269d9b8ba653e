from typing import Any, Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.telemetry_store import TelemetryStore, build_default_store, build_default_table
from models.errors import PersistError
from models.records import Reading
from services.decoder import PacketDecoder
from services.link import LinkManager, LinkTarget
from services.locator import LocationEnricher, StaticLocationProvider
from services.pipeline import TelemetryPipeline, build_default_pipeline
from settings import get_settings
from storage.mock_table import MockReadingsTable

_PACKET = {"temperature": 22.0, "humidity": 50.0, "pressure": 1013.0, "air_quality": 40.0}


class IdleScanner:
    def __init__(self, detection_callback) -> None:
        self.detection_callback = detection_callback

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class RefusingTable:
    name = "sensor_data"

    async def insert(self, payload: Any) -> Reading:
        raise PersistError("remote refused insert")

    async def select(self, limit: int, descending: bool = True) -> List[Reading]:
        raise PersistError("remote refused read")


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch) -> Iterator[None]:
    monkeypatch.delenv("LINK_AUTOSTART", raising=False)
    monkeypatch.delenv("REMOTE_STORE_URL", raising=False)
    get_settings.cache_clear()
    LinkManager._radio_holder = None
    yield
    LinkManager._radio_holder = None
    get_settings.cache_clear()


@pytest.fixture
def pipeline(tmp_path) -> TelemetryPipeline:
    link = LinkManager(
        LinkTarget("ESP32_Sensor", "svc", "chr"),
        scanner_factory=IdleScanner,
        client_factory=lambda *args, **kwargs: None,
    )
    table = MockReadingsTable(name="sensor_data", persistence_path=tmp_path / "readings.json")
    return TelemetryPipeline(
        link=link,
        decoder=PacketDecoder(),
        enricher=LocationEnricher(StaticLocationProvider(41.39, 2.17)),
        store=TelemetryStore(table=table),
    )


@pytest.fixture
def api_client(pipeline: TelemetryPipeline, monkeypatch) -> Iterator[TestClient]:
    def build_test_pipeline() -> TelemetryPipeline:
        return pipeline

    build_test_pipeline.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_pipeline", build_test_pipeline)
    monkeypatch.setattr("app.api.build_default_pipeline", build_test_pipeline)

    app = create_app()
    with TestClient(app) as client:
        yield client


def _relay(client: TestClient, **overrides: float) -> None:
    response = client.post("/sensor-data", json={**_PACKET, **overrides})
    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_lifespan_stops_pipeline_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MOCK_STORE_PERSISTENCE_PATH", str(tmp_path / "readings.json"))
    for cache in (get_settings, build_default_table, build_default_store, build_default_pipeline):
        cache.cache_clear()

    try:
        with TestClient(create_app()):
            pipeline_during = build_default_pipeline()
            assert pipeline_during.polling is True

        assert pipeline_during.polling is False
        assert build_default_pipeline() is not pipeline_during
    finally:
        for cache in (build_default_pipeline, build_default_store, build_default_table, get_settings):
            cache.cache_clear()


def test_latest_reports_awaiting_sensor_when_empty(api_client: TestClient) -> None:
    response = api_client.get("/readings/latest")

    assert response.status_code == 200
    assert response.json() == {"status": "awaiting_sensor", "reading": None}


def test_relay_feeds_the_ingest_path(api_client: TestClient, pipeline: TelemetryPipeline) -> None:
    _relay(api_client)

    latest = api_client.get("/readings/latest").json()
    assert latest["status"] == "ok"
    assert latest["reading"]["temperature"] == 22.0
    assert latest["reading"]["latitude"] == 41.39
    assert pipeline.counters.persisted == 1

    feed = api_client.get("/sensor-data").json()
    assert [row["id"] for row in feed] == ["1"]


def test_relay_rejects_packets_missing_metrics(api_client: TestClient) -> None:
    response = api_client.post("/sensor-data", json={"temperature": 22.0})

    assert response.status_code == 400
    assert api_client.get("/link").json()["counters"]["dropped"] == 1


def test_metric_stats_and_unknown_metric(api_client: TestClient) -> None:
    _relay(api_client, temperature=20.0)
    _relay(api_client, temperature=24.0)

    stats = api_client.get("/metrics/temperature/stats").json()
    assert stats == {"metric": "temperature", "min": 20.0, "max": 24.0, "mean": 22.0, "latest": 24.0}

    windowed = api_client.get("/metrics/humidity/stats", params={"minutes": 5}).json()
    assert windowed["mean"] == 50.0

    assert api_client.get("/metrics/wind/stats").status_code == 400


def test_stats_without_data_are_null(api_client: TestClient) -> None:
    stats = api_client.get("/metrics/pressure/stats").json()

    assert stats == {"metric": "pressure", "min": None, "max": None, "mean": None, "latest": None}


def test_readings_window_and_validation(api_client: TestClient) -> None:
    _relay(api_client)

    assert len(api_client.get("/readings/window", params={"minutes": 5}).json()) == 1
    assert api_client.get("/readings/window", params={"minutes": -1}).status_code == 400
    assert api_client.get("/readings", params={"order": "sideways"}).status_code == 400
    assert len(api_client.get("/readings", params={"limit": 1, "order": "asc"}).json()) == 1


def test_session_chart_classify_and_comfort(api_client: TestClient) -> None:
    _relay(api_client, temperature=21.0)
    _relay(api_client, temperature=23.0)

    session = api_client.get("/readings/session").json()
    assert [row["temperature"] for row in session] == [21.0, 23.0]

    chart = api_client.get("/metrics/temperature/chart", params={"minutes": 5}).json()
    assert len(chart["points"]) == 2
    assert all(point["x"] <= 0 for point in chart["points"])
    assert chart["domain"] == pytest.approx([20.8, 23.2])

    score = api_client.get("/metrics/temperature/classify", params={"value": 22}).json()
    assert score["band_label"] == "comfortable"
    assert score["comfort"] == 5

    comfort = api_client.get("/comfort").json()
    assert comfort["temperature"] == 5
    assert comfort["comfort_index"] == 5.0


def test_summary_uses_location_data_key(api_client: TestClient) -> None:
    _relay(api_client)

    body = api_client.get("/summary").json()

    assert set(body["summary"]) == {"temperature", "humidity", "pressure", "air_quality"}
    assert len(body["locationData"]) == 1
    assert body["locationData"][0]["longitude"] == 2.17


def test_export_csv(api_client: TestClient) -> None:
    _relay(api_client)

    response = api_client.get("/readings/export.csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.splitlines()
    assert lines[0].startswith("Time,Lat,Lng")
    assert len(lines) == 2
    assert api_client.get("/readings/export.csv", params={"date": "2024-01-01", "hour": 30}).status_code == 400


def test_link_start_and_stop(api_client: TestClient) -> None:
    assert api_client.get("/link").json()["state"] == "idle"

    started = api_client.post("/link/start").json()
    assert started["state"] == "scanning"
    assert started["device"] == "ESP32_Sensor"

    stopped = api_client.post("/link/stop").json()
    assert stopped["state"] == "idle"


def test_link_start_when_radio_is_taken(api_client: TestClient) -> None:
    LinkManager._radio_holder = object()  # type: ignore[assignment]

    response = api_client.post("/link/start")

    assert response.status_code == 503


def test_remote_read_failure_maps_to_bad_gateway(api_client: TestClient, pipeline: TelemetryPipeline) -> None:
    _relay(api_client)
    assert [row["id"] for row in api_client.get("/readings/remote").json()] == ["1"]

    pipeline.store.table = RefusingTable()

    assert api_client.get("/readings/remote").status_code == 502


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"
