from fastapi import HTTPException
from pydantic import ValidationError as ConfigValidationError

from aggregation import (
    annual_slice,
    compute_stats,
    daily_slice,
    format_stats,
    month_key_from_date,
    monthly_rollup,
    year_options,
)
from cache import SeriesCache
from config_models import AppConfigModel
from container import build_container
from coordinator import DRILL_LEVELS, DrillDownCoordinator
from models import Stats
from projects import configured_names, display_name, list_projects
from series import DATE_RE, MONTH_KEY_RE
from services.store_service import StoreService
import yaml
import os
import json
import re
import logging

CONTAINER = build_container()
CONFIG_FILE = CONTAINER.config.config_file
HA_OPTIONS_FILE = CONTAINER.config.ha_options_file
APP_VERSION = os.getenv("ADDON_VERSION", os.getenv("APP_VERSION", "dev"))
logger = logging.getLogger("uvicorn.error")

YEAR_RE = re.compile(r"^\d{4}$")

SERIES_CACHE = None
COORDINATOR = None


# --- Config ---

def merge_config(base, override):
    if not isinstance(base, dict):
        base = {}
    if not isinstance(override, dict):
        return base
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = merge_config(base.get(key), value)
        else:
            base[key] = value
    return base

def load_config():
    cfg = {}
    if os.path.exists(CONFIG_FILE):
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

    if HA_OPTIONS_FILE.exists():
        try:
            with open(HA_OPTIONS_FILE, "r", encoding="utf-8") as f:
                options = json.load(f)
            cfg = merge_config(cfg, options)
        except (OSError, json.JSONDecodeError, TypeError) as exc:
            logger.warning("Ignoring unreadable options file %s: %s", HA_OPTIONS_FILE, exc)

    env_base_url = os.getenv("PML_DATA_BASE_URL")
    if env_base_url:
        cfg["data_base_url"] = env_base_url

    try:
        return AppConfigModel.model_validate(cfg)
    except ConfigValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        raise HTTPException(status_code=500, detail="Invalid configuration. Check config.yaml.") from exc

def build_store_service(cfg):
    if not cfg.data_base_url:
        raise HTTPException(status_code=503, detail="Data store is not configured. Set data_base_url or PML_DATA_BASE_URL.")
    return StoreService(
        cfg.data_base_url,
        logger=logger,
        timeout=cfg.request_timeout_seconds,
        cache_bust=cfg.cache_bust,
        default_timezone=cfg.timezone,
    )

def get_series_cache(cfg):
    global SERIES_CACHE
    if SERIES_CACHE is None:
        SERIES_CACHE = SeriesCache(ttl_seconds=cfg.cache_ttl_seconds)
    return SERIES_CACHE

def get_coordinator(cfg):
    global COORDINATOR
    if COORDINATOR is None:
        COORDINATOR = DrillDownCoordinator(build_store_service(cfg), logger=logger, cache=get_series_cache(cfg))
    return COORDINATOR

def _cached(cache, key, loader):
    value = cache.get(key)
    if value is None:
        value = loader()
        cache.put(key, value)
    return value

def _validate_month_key(month_key):
    if not MONTH_KEY_RE.match(month_key or ""):
        raise HTTPException(status_code=400, detail="Invalid month format. Use YYYY_MM.")

def _validate_day(day):
    if not DATE_RE.match(day or ""):
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")

def _stats_payload(stats):
    return {**stats.to_dict(), "formatted": format_stats(stats)}


# --- Catalog and series ---

def get_version():
    return {"version": APP_VERSION}

def get_projects():
    cfg = load_config()
    return {"default": cfg.default_project, "projects": list_projects(cfg.projects)}

def load_catalog(cfg, project):
    store = build_store_service(cfg)
    return _cached(get_series_cache(cfg), ("catalog", project), lambda: store.load_catalog(project))

def load_daily(cfg, project, node):
    store = build_store_service(cfg)
    return _cached(get_series_cache(cfg), ("daily", project, node), lambda: store.load_daily(project, node))

def load_hourly(cfg, project, node, month_key):
    store = build_store_service(cfg)
    return _cached(
        get_series_cache(cfg),
        ("hourly", project, node, month_key),
        lambda: store.load_hourly(project, node, month_key),
    )

def get_catalog(project):
    cfg = load_config()
    catalog = load_catalog(cfg, project)
    payload = catalog.to_dict()
    payload["name"] = display_name(project, catalog, cfg.projects)
    return payload

def get_historical(project, node):
    cfg = load_config()
    series = load_daily(cfg, project, node)
    summaries = monthly_rollup(series.rows)
    return {
        "project": project,
        "node": node,
        "timezone": series.timezone,
        "points": [s.to_point() for s in summaries],
        "stats": _stats_payload(compute_stats([s.avg for s in summaries])),
        "years": year_options(series.rows),
        "skipped_rows": series.skipped_count,
    }

def get_annual(project, node, year=None):
    if year is not None and not YEAR_RE.match(str(year)):
        raise HTTPException(status_code=400, detail="Invalid year format. Use YYYY.")
    cfg = load_config()
    series = load_daily(cfg, project, node)
    if year is None:
        year = series.rows[-1].year if series.rows else ""
    rows = annual_slice(series.rows, year)
    return {
        "project": project,
        "node": node,
        "year": year,
        "timezone": series.timezone,
        "points": [row.to_point() for row in rows],
        "stats": _stats_payload(compute_stats([row.avg for row in rows])),
        "skipped_rows": series.skipped_count,
    }

def get_monthly(project, node, month_key):
    _validate_month_key(month_key)
    cfg = load_config()
    series = load_hourly(cfg, project, node, month_key)
    return {
        "project": project,
        "node": node,
        "month": month_key,
        "metadata": series.metadata,
        "points": [row.to_point() for row in series.rows],
        "stats": _stats_payload(compute_stats([row.price for row in series.rows])),
        "skipped_rows": series.skipped_count,
    }

def get_daily(project, node, day):
    _validate_day(day)
    cfg = load_config()
    month_key = month_key_from_date(day)
    series = load_hourly(cfg, project, node, month_key)
    points = daily_slice(series.rows, day)
    return {
        "project": project,
        "node": node,
        "day": day,
        "month": month_key,
        "points": [p.to_point() for p in points],
        "stats": _stats_payload(compute_stats([p.price for p in points])),
    }


# --- Dashboard session ---

def _session_state(cfg, coordinator):
    state = coordinator.snapshot(project_names=cfg.projects)
    for view in ("historical", "annual", "monthly", "daily"):
        state[view]["stats"] = _stats_payload(Stats(**state[view]["stats"]))
    state["pending_loads"] = coordinator.pending
    return state

async def get_state(wait=False):
    cfg = load_config()
    coordinator = get_coordinator(cfg)
    if not coordinator.selection.project:
        coordinator.select_project(cfg.default_project)
    if wait:
        await coordinator.wait()
    return _session_state(cfg, coordinator)

async def select(payload, wait=False):
    cfg = load_config()
    coordinator = get_coordinator(cfg)
    payload = payload or {}
    project = payload.get("project")
    if project and (not isinstance(project, str) or project not in configured_names(cfg.projects)):
        raise HTTPException(status_code=400, detail=f"Unknown project '{project}'.")
    try:
        await coordinator.select(
            project=project,
            node=payload.get("node"),
            year=payload.get("year"),
            month=payload.get("month"),
            day=payload.get("day"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if wait:
        await coordinator.wait()
    return _session_state(cfg, coordinator)

async def drill(payload, wait=False):
    cfg = load_config()
    coordinator = get_coordinator(cfg)
    payload = payload or {}
    level = payload.get("level")
    point = payload.get("point")
    if level not in DRILL_LEVELS:
        raise HTTPException(status_code=400, detail=f"Invalid drill level. Use one of: {', '.join(DRILL_LEVELS)}.")
    if not isinstance(point, dict):
        raise HTTPException(status_code=400, detail="Drill point must be an object.")
    coordinator.drill(level, point)
    if wait:
        await coordinator.wait()
    return _session_state(cfg, coordinator)

async def refresh(wait=False, all_projects=False):
    cfg = load_config()
    coordinator = get_coordinator(cfg)
    coordinator.refresh(all_projects=all_projects)
    if wait:
        await coordinator.wait()
    return _session_state(cfg, coordinator)

def get_cache_status():
    cfg = load_config()
    return get_series_cache(cfg).status()
