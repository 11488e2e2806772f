import asyncio
import gzip
import json
import logging
import pathlib
import sys

import pytest


BACKEND_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import app_service  # noqa: E402
from errors import NotFoundError  # noqa: E402
from series import parse_catalog, parse_daily_payload, parse_hourly_payload  # noqa: E402


CATALOG_PAYLOAD = {
    "defaultNode": "07ROS-115",
    "displayName": "Rumorosa",
    "nodes": [
        {"node": "07ROS-115", "system": "BCA", "months": ["2024_03", "2024_01", "2024_02"]},
        {"node": "07MXI-230", "system": "BCA", "months": ["2023_12", "2024_01"]},
    ],
}

DAILY_PAYLOAD = {
    "tz": "America/Tijuana",
    "daily": [
        ["2023-12-30", 40.0, 30.0, 50.0, 24],
        ["2023-12-31", 42.0, 31.0, 55.0, 24],
        ["2024-01-01", 50.0, 35.0, 60.0, 24],
        ["2024-03-15", 60.0, 40.0, 80.0, 24],
    ],
}


def hourly_payload(month_key, days, price=10.0):
    rows = []
    for day in days:
        for hour in range(24):
            rows.append([day, hour, price + hour])
    return {"node": "07ROS-115", "system": "BCA", "month": month_key, "rows": rows}


def gzip_json(payload):
    return gzip.compress(json.dumps(payload).encode("utf-8"))


class FakeStore:
    """In-memory store returning parsed payloads; missing keys raise NotFoundError."""

    def __init__(self, catalogs=None, daily=None, hourly=None):
        self.catalogs = catalogs or {}
        self.daily = daily or {}
        self.hourly = hourly or {}
        self.calls = []

    def load_catalog(self, project):
        self.calls.append(("catalog", project))
        if project not in self.catalogs:
            raise NotFoundError(404, f"http://store/pml-mda/{project}/index.json")
        return parse_catalog(project, self.catalogs[project])

    def load_daily(self, project, node):
        self.calls.append(("daily", project, node))
        key = (project, node)
        if key not in self.daily:
            raise NotFoundError(404, f"http://store/pml-mda/{project}/nodes/{node}/daily/series.json.gz")
        return parse_daily_payload(self.daily[key])

    def load_hourly(self, project, node, month_key):
        self.calls.append(("hourly", project, node, month_key))
        key = (project, node, month_key)
        if key not in self.hourly:
            raise NotFoundError(404, f"http://store/pml-mda/{project}/nodes/{node}/hourly/{month_key}.json.gz")
        return parse_hourly_payload(self.hourly[key])


class Gate:
    """Runs loaders on the event loop, holding chosen calls until released."""

    def __init__(self):
        self.held = {}

    def hold(self, *key):
        self.held[key] = asyncio.Event()

    def release(self, *key):
        self.held[key].set()

    async def __call__(self, loader, *args):
        event = self.held.get(args)
        if event is not None:
            await event.wait()
        return loader(*args)


@pytest.fixture
def store():
    return FakeStore(
        catalogs={"rum": CATALOG_PAYLOAD, "pima": {"nodes": [{"node": "02PIM-115", "system": "SIN", "months": ["2024_05"]}]}},
        daily={("rum", "07ROS-115"): DAILY_PAYLOAD, ("rum", "07MXI-230"): {"daily": [["2024-01-05", 5.0, 4.0, 6.0, 24]]}},
        hourly={
            ("rum", "07ROS-115", "2024_01"): hourly_payload("2024_01", ["2024-01-01", "2024-01-02"]),
            ("rum", "07ROS-115", "2024_02"): hourly_payload("2024_02", ["2024-02-01"], price=20.0),
            ("rum", "07ROS-115", "2024_03"): hourly_payload("2024_03", ["2024-03-01", "2024-03-15"], price=30.0),
            ("rum", "07MXI-230", "2024_03"): hourly_payload("2024_03", ["2024-03-02"], price=40.0),
        },
    )


@pytest.fixture
def logger():
    return logging.getLogger("test.pml")


@pytest.fixture
def backend_service():
    return app_service


@pytest.fixture
def isolated_config(monkeypatch, tmp_path, backend_service):
    config_file = tmp_path / "config.yaml"
    options_file = tmp_path / "options.json"
    monkeypatch.setattr(backend_service, "CONFIG_FILE", config_file)
    monkeypatch.setattr(backend_service, "HA_OPTIONS_FILE", options_file)
    monkeypatch.setattr(backend_service, "SERIES_CACHE", None)
    monkeypatch.setattr(backend_service, "COORDINATOR", None)
    monkeypatch.delenv("PML_DATA_BASE_URL", raising=False)
    return {"config_file": config_file, "options_file": options_file}
