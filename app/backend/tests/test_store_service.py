import json

import pytest
import requests

from conftest import CATALOG_PAYLOAD, DAILY_PAYLOAD, gzip_json, hourly_payload
from errors import DecodeError, NotFoundError
from services.store_service import StoreService


class FakeResponse:
    def __init__(self, content, status_code=200, reason="OK"):
        self.content = content
        self.status_code = status_code
        self.reason = reason


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        return response or FakeResponse(b"Not Found", status_code=404, reason="Not Found")


BASE = "https://data.example.com/"


def build_service(logger, responses, **kwargs):
    session = FakeSession(responses)
    return StoreService(BASE, logger=logger, session=session, **kwargs), session


def test_urls_follow_store_layout(logger):
    service, _ = build_service(logger, {})
    assert service.index_url("rum") == "https://data.example.com/pml-mda/rum/index.json"
    assert service.daily_url("rum", "07ROS-115") == "https://data.example.com/pml-mda/rum/nodes/07ROS-115/daily/series.json.gz"
    assert service.hourly_url("rum", "07ROS-115", "2024_03") == (
        "https://data.example.com/pml-mda/rum/nodes/07ROS-115/hourly/2024_03.json.gz"
    )


def test_load_catalog_from_plain_json(logger):
    url = "https://data.example.com/pml-mda/rum/index.json"
    service, session = build_service(logger, {url: FakeResponse(json.dumps(CATALOG_PAYLOAD).encode("utf-8"))})

    catalog = service.load_catalog("rum")

    assert catalog.default_node == "07ROS-115"
    assert [entry.node for entry in catalog.nodes] == ["07ROS-115", "07MXI-230"]
    assert session.requests[0]["params"] is None
    assert session.requests[0]["timeout"] is None


def test_load_catalog_with_cache_bust_adds_version_param(logger):
    url = "https://data.example.com/pml-mda/rum/index.json"
    service, session = build_service(
        logger, {url: FakeResponse(json.dumps(CATALOG_PAYLOAD).encode("utf-8"))}, cache_bust=True, timeout=5
    )

    service.load_catalog("rum")

    assert isinstance(session.requests[0]["params"]["v"], int)
    assert session.requests[0]["timeout"] == 5


def test_load_daily_and_hourly_from_gzip(logger):
    daily_url = "https://data.example.com/pml-mda/rum/nodes/07ROS-115/daily/series.json.gz"
    hourly_url = "https://data.example.com/pml-mda/rum/nodes/07ROS-115/hourly/2024_01.json.gz"
    service, _ = build_service(
        logger,
        {
            daily_url: FakeResponse(gzip_json(DAILY_PAYLOAD)),
            hourly_url: FakeResponse(gzip_json(hourly_payload("2024_01", ["2024-01-01"]))),
        },
    )

    daily = service.load_daily("rum", "07ROS-115")
    hourly = service.load_hourly("rum", "07ROS-115", "2024_01")

    assert daily.timezone == "America/Tijuana"
    assert len(daily.rows) == 4
    assert len(hourly.rows) == 24
    assert hourly.metadata["month"] == "2024_01"


def test_non_2xx_response_raises_not_found_with_status_and_url(logger):
    service, _ = build_service(logger, {})

    with pytest.raises(NotFoundError) as exc_info:
        service.load_hourly("rum", "07ROS-115", "1999_01")

    assert exc_info.value.status_code == 404
    assert exc_info.value.url.endswith("/hourly/1999_01.json.gz")
    assert "HTTP 404" in str(exc_info.value)


def test_transport_error_is_wrapped_as_not_found(logger):
    url = "https://data.example.com/pml-mda/rum/index.json"
    service, _ = build_service(logger, {url: requests.ConnectionError("connection refused")})

    with pytest.raises(NotFoundError) as exc_info:
        service.load_catalog("rum")

    assert exc_info.value.status_code is None
    assert "connection refused" in str(exc_info.value)


def test_malformed_payload_raises_decode_error(logger):
    url = "https://data.example.com/pml-mda/rum/nodes/07ROS-115/daily/series.json.gz"
    service, _ = build_service(logger, {url: FakeResponse(b"<Error>AccessDenied</Error>")})

    with pytest.raises(DecodeError):
        service.load_daily("rum", "07ROS-115")


def test_module_level_requests_get_is_used_without_session(monkeypatch, logger):
    captured = {}

    def fake_get(url, params=None, timeout=None):
        captured["url"] = url
        return FakeResponse(json.dumps({"nodes": []}).encode("utf-8"))

    monkeypatch.setattr(requests, "get", fake_get)
    service = StoreService("https://data.example.com", logger=logger)

    catalog = service.load_catalog("tep")

    assert captured["url"] == "https://data.example.com/pml-mda/tep/index.json"
    assert catalog.nodes == []
