import time as time_module

import requests

from decoder import decode_payload
from errors import NotFoundError
from models import DEFAULT_TIMEZONE
from series import parse_catalog, parse_daily_payload, parse_hourly_payload


class StoreService:
    """Read-only client for the pre-aggregated PML MDA store.

    Every call is a single idempotent GET. Failures are raised to the
    caller as-is; nothing here retries.
    """

    def __init__(self, base_url, logger, timeout=None, cache_bust=False, default_timezone=DEFAULT_TIMEZONE, session=None):
        self.base_url = (base_url or "").rstrip("/")
        self.logger = logger
        self.timeout = timeout
        self.cache_bust = cache_bust
        self.default_timezone = default_timezone
        self.session = session

    def index_url(self, project):
        return f"{self.base_url}/pml-mda/{project}/index.json"

    def daily_url(self, project, node):
        return f"{self.base_url}/pml-mda/{project}/nodes/{node}/daily/series.json.gz"

    def hourly_url(self, project, node, month_key):
        return f"{self.base_url}/pml-mda/{project}/nodes/{node}/hourly/{month_key}.json.gz"

    def fetch_bytes(self, url, params=None):
        getter = self.session.get if self.session is not None else requests.get
        self.logger.info("Fetching %s", url)
        try:
            r = getter(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NotFoundError(None, url, reason=str(exc)) from exc
        if not 200 <= r.status_code < 300:
            raise NotFoundError(r.status_code, url, reason=r.reason)
        return r.content

    def load_catalog(self, project):
        params = {"v": int(time_module.time())} if self.cache_bust else None
        payload = decode_payload(self.fetch_bytes(self.index_url(project), params=params))
        catalog = parse_catalog(project, payload)
        self.logger.info("Loaded catalog for %s: %s nodes", project, len(catalog.nodes))
        return catalog

    def load_daily(self, project, node):
        url = self.daily_url(project, node)
        series = parse_daily_payload(decode_payload(self.fetch_bytes(url)), default_timezone=self.default_timezone)
        if series.skipped:
            self.logger.info("Skipped %s malformed daily rows in %s", series.skipped_count, url)
        return series

    def load_hourly(self, project, node, month_key):
        url = self.hourly_url(project, node, month_key)
        series = parse_hourly_payload(decode_payload(self.fetch_bytes(url)))
        if series.skipped:
            self.logger.info("Skipped %s malformed hourly rows in %s", series.skipped_count, url)
        return series
