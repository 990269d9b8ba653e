from __future__ import annotations

import asyncio
import json
import logging
from typing import List

import httpx
import pytest

from models.errors import PersistError
from storage.rest_table import RestReadingsTable

_BASE_URL = "https://project.example.co"

_ROW = {
    "id": 7,
    "created_at": "2024-01-01T12:00:00+00:00",
    "temperature": 21.5,
    "humidity": 44.0,
    "pressure": 1009.0,
    "air_quality": 18.0,
    "latitude": 59.3,
    "longitude": 18.1,
}


def _table(handler, api_key: str | None = "anon-key") -> RestReadingsTable:
    client = httpx.AsyncClient(base_url=_BASE_URL, transport=httpx.MockTransport(handler))
    return RestReadingsTable(_BASE_URL, table="sensor_data", api_key=api_key, client=client)


def test_insert_posts_row_and_returns_server_representation() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[_ROW])

    table = _table(handler)
    payload = {key: _ROW[key] for key in ("temperature", "humidity", "pressure", "air_quality")}

    reading = asyncio.run(table.insert(payload))

    assert reading.id == "7"
    assert reading.created_at.tzinfo is not None
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/sensor_data"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer anon-key"
    assert request.headers["Prefer"] == "return=representation"
    assert json.loads(request.content) == payload


def test_select_sends_order_and_limit() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[_ROW])

    readings = asyncio.run(_table(handler).select(100))

    assert [reading.id for reading in readings] == ["7"]
    params = seen[0].url.params
    assert params["order"] == "created_at.desc"
    assert params["limit"] == "100"
    assert params["select"] == "*"


def test_select_skips_malformed_rows(caplog) -> None:
    broken = {"id": 8, "created_at": "2024-01-01T12:01:00Z", "temperature": "hot"}

    table = _table(lambda request: httpx.Response(200, json=[_ROW, broken]))
    with caplog.at_level(logging.WARNING, logger="storage.rest_table"):
        readings = asyncio.run(table.select(10, descending=False))

    assert [reading.id for reading in readings] == ["7"]
    assert any(getattr(record, "reading_id", None) == 8 for record in caplog.records)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"message": "invalid key"}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"rows": []}),
    ],
)
def test_select_failures_raise_persist_error(response: httpx.Response) -> None:
    with pytest.raises(PersistError):
        asyncio.run(_table(lambda request: response).select(10))


def test_insert_transport_error_raises_persist_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(PersistError):
        asyncio.run(_table(handler).insert({"temperature": 1.0}))


def test_insert_rejected_row_raises_persist_error() -> None:
    table = _table(lambda request: httpx.Response(201, json=[{"id": 1}]))

    with pytest.raises(PersistError):
        asyncio.run(table.insert({"temperature": 1.0}))
