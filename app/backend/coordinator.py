from __future__ import annotations

import asyncio
import itertools
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from aggregation import (
    annual_slice,
    compute_stats,
    daily_slice,
    day_options,
    monthly_rollup,
    year_options,
)
from cache import SeriesCache
from errors import StoreError
from models import DEFAULT_TIMEZONE, Selection
from projects import display_name
from selection import (
    catalog_defaults,
    day_after_hourly,
    drill_annual,
    drill_historical,
    drill_monthly,
    year_after_daily,
)
from series import DATE_RE, MONTH_KEY_RE


YEAR_RE = re.compile(r"^\d{4}$")

AXIS_CATALOG = "catalog"
AXIS_DAILY = "daily"
AXIS_HOURLY = "hourly"
AXES = (AXIS_CATALOG, AXIS_DAILY, AXIS_HOURLY)

DRILL_LEVELS = ("historical", "annual", "monthly")


class AxisStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class AxisState:
    status: AxisStatus = AxisStatus.IDLE
    key: tuple | None = None
    token: int = 0
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "key": list(self.key) if self.key else None,
            "error": self.error,
        }


class DrillDownCoordinator:
    """Owns the project/node/year/month/day selection and the loads behind it.

    Every load is stamped with a token when it starts. A result (or error)
    only commits while its token is still the current one for the axis, so
    a slow response for an earlier selection never overwrites a newer one.
    All state changes happen on the event loop; loaders run via
    ``run_blocking`` (``asyncio.to_thread`` by default).
    """

    def __init__(self, store, logger, cache: SeriesCache | None = None, run_blocking=None):
        self.store = store
        self.logger = logger
        self.cache = cache if cache is not None else SeriesCache()
        self.selection = Selection()
        self.axes: dict[str, AxisState] = {axis: AxisState() for axis in AXES}
        self.error = ""
        self._run_blocking = run_blocking or asyncio.to_thread
        self._tokens = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()

    # --- Loaded data ---

    def _ready_data(self, axis):
        state = self.axes[axis]
        return state.data if state.status is AxisStatus.READY else None

    @property
    def catalog(self):
        return self._ready_data(AXIS_CATALOG)

    @property
    def daily_series(self):
        return self._ready_data(AXIS_DAILY)

    @property
    def hourly_series(self):
        return self._ready_data(AXIS_HOURLY)

    @property
    def daily_rows(self):
        series = self.daily_series
        return series.rows if series else []

    @property
    def hourly_rows(self):
        series = self.hourly_series
        return series.rows if series else []

    # --- Load lifecycle ---

    def _start(self, axis, key, loader, cascade=True):
        token = next(self._tokens)
        self.axes[axis] = AxisState(status=AxisStatus.LOADING, key=key, token=token)
        cached = self.cache.get((axis,) + key)
        if cached is not None:
            self.logger.debug("Cache hit for %s %s", axis, key)
            self._commit(axis, token, cached, cascade)
            return None
        task = asyncio.get_running_loop().create_task(self._load(axis, key, token, loader, cascade))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _reset(self, axis):
        # A fresh token supersedes whatever is still in flight for the axis.
        self.axes[axis] = AxisState(token=next(self._tokens))

    def _is_current(self, axis, token):
        return self.axes[axis].token == token

    async def _load(self, axis, key, token, loader, cascade):
        try:
            value = await self._run_blocking(loader, *key)
        except StoreError as exc:
            if not self._is_current(axis, token):
                self.logger.debug("Dropping superseded %s failure for %s: %s", axis, key, exc)
                return
            self._fail(axis, token, str(exc))
            return
        except Exception as exc:  # noqa: BLE001
            if not self._is_current(axis, token):
                return
            self.logger.exception("Unexpected %s load failure for %s", axis, key)
            self._fail(axis, token, f"Unexpected error: {exc}")
            return
        if not self._is_current(axis, token):
            self.logger.info("Dropping superseded %s result for %s", axis, key)
            return
        self.cache.put((axis,) + key, value)
        self._commit(axis, token, value, cascade)

    def _fail(self, axis, token, message):
        key = self.axes[axis].key
        self.axes[axis] = AxisState(status=AxisStatus.FAILED, key=key, token=token, error=message)
        self.error = message
        self.logger.warning("Loading %s %s failed: %s", axis, key, message)

    def _commit(self, axis, token, value, cascade=True):
        key = self.axes[axis].key
        self.axes[axis] = AxisState(status=AxisStatus.READY, key=key, token=token, data=value)
        if axis == AXIS_CATALOG:
            if cascade:
                self._apply_catalog_defaults(value)
        elif axis == AXIS_DAILY:
            year = year_after_daily(value.rows, self.selection.year)
            self.selection = replace(self.selection, year=year or "")
        elif axis == AXIS_HOURLY:
            self.selection = replace(self.selection, day=day_after_hourly(value.rows, self.selection.day))

    def _apply_catalog_defaults(self, catalog):
        defaults = catalog_defaults(catalog)
        self.selection = replace(
            self.selection,
            node=defaults["node"],
            month=defaults["month"],
            year=defaults["year"] or self.selection.year,
        )
        self._start_daily()
        self._start_hourly()

    def _start_catalog(self, cascade=True):
        project = self.selection.project
        if not project:
            self._reset(AXIS_CATALOG)
            return None
        return self._start(AXIS_CATALOG, (project,), self.store.load_catalog, cascade=cascade)

    def _start_daily(self):
        sel = self.selection
        if not (sel.project and sel.node):
            self._reset(AXIS_DAILY)
            return None
        return self._start(AXIS_DAILY, (sel.project, sel.node), self.store.load_daily)

    def _start_hourly(self):
        sel = self.selection
        if not (sel.project and sel.node and sel.month):
            self._reset(AXIS_HOURLY)
            return None
        return self._start(AXIS_HOURLY, (sel.project, sel.node, sel.month), self.store.load_hourly)

    async def wait(self):
        """Wait until no load is in flight, including loads started by cascades."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    @property
    def pending(self):
        return len(self._tasks)

    # --- Selection changes ---

    def select_project(self, project):
        if not project or project == self.selection.project:
            return None
        self.error = ""
        self.selection = Selection(project=project, year=self.selection.year)
        for axis in AXES:
            self._reset(axis)
        return self._start_catalog()

    def select_node(self, node):
        if not node or node == self.selection.node:
            return
        catalog = self.catalog
        if catalog is not None and catalog.find_node(node) is None:
            raise ValueError(f"Unknown node '{node}' for project '{self.selection.project}'.")
        self.error = ""
        self.selection = replace(self.selection, node=node)
        self._start_daily()
        self._start_hourly()

    def select_month(self, month):
        if not month or month == self.selection.month:
            return
        if not isinstance(month, str) or not MONTH_KEY_RE.match(month):
            raise ValueError(f"Invalid month key '{month}'. Use YYYY_MM.")
        self.error = ""
        self.selection = replace(self.selection, month=month)
        self._start_hourly()

    def select_year(self, year):
        year = str(year)
        if not YEAR_RE.match(year):
            raise ValueError(f"Invalid year '{year}'. Use YYYY.")
        self.selection = replace(self.selection, year=year)

    def select_day(self, day):
        if not isinstance(day, str) or not DATE_RE.match(day):
            raise ValueError(f"Invalid day '{day}'. Use YYYY-MM-DD.")
        if self.axes["hourly"].status is AxisStatus.READY and day not in self.day_options():
            raise ValueError(f"Day '{day}' is not in month '{self.selection.month}'.")
        self.selection = replace(self.selection, day=day)

    async def select(self, project=None, node=None, year=None, month=None, day=None):
        """Apply control changes coarse to fine, the way the controls cascade.

        Finer choices made together with a new project wait for its catalog,
        otherwise the catalog defaults would overwrite them.
        """
        if project:
            task = self.select_project(project)
            if task is not None and (node or month or day):
                await task
        if node:
            self.select_node(node)
        if year:
            self.select_year(year)
        if month:
            self.select_month(month)
        if day:
            self.select_day(day)

    def drill(self, level, point):
        if level == "historical":
            target = drill_historical(self.selection, point)
        elif level == "annual":
            target = drill_annual(self.selection, point, self.month_options())
        elif level == "monthly":
            target = drill_monthly(self.selection, point)
        else:
            raise ValueError(f"Unknown drill level '{level}'. Use one of {', '.join(DRILL_LEVELS)}.")
        month_changed = target.month != self.selection.month
        # Day is set before the hourly load so a matching month keeps it.
        self.selection = target
        if month_changed:
            self._start_hourly()

    def refresh(self, all_projects=False):
        """Drop cached data for the current project and reload every axis in place.

        With ``all_projects`` the whole session cache is emptied first.
        """
        project = self.selection.project
        if all_projects:
            self.cache.clear()
        if not project:
            return
        self.cache.invalidate_project(project)
        self.error = ""
        self._start_catalog(cascade=False)
        self._start_daily()
        self._start_hourly()

    # --- Derived views ---

    def node_options(self):
        catalog = self.catalog
        if catalog is None:
            return []
        return [{"node": entry.node, "system": entry.system} for entry in catalog.nodes]

    def month_options(self):
        catalog = self.catalog
        if catalog is None or not self.selection.node:
            return []
        return catalog.months_for(self.selection.node)

    def year_options(self):
        return year_options(self.daily_rows)

    def day_options(self):
        return day_options(self.hourly_rows)

    def historical_view(self):
        summaries = monthly_rollup(self.daily_rows)
        return summaries, compute_stats([s.avg for s in summaries])

    def annual_view(self):
        rows = annual_slice(self.daily_rows, self.selection.year)
        return rows, compute_stats([row.avg for row in rows])

    def monthly_view(self):
        rows = self.hourly_rows
        return rows, compute_stats([row.price for row in rows])

    def daily_view(self):
        points = daily_slice(self.hourly_rows, self.selection.day)
        return points, compute_stats([p.price for p in points])

    def system_label(self):
        catalog = self.catalog
        entry = catalog.find_node(self.selection.node) if catalog else None
        return entry.system if entry else None

    def snapshot(self, project_names=None):
        daily = self.daily_series
        hourly = self.hourly_series
        historical, historical_stats = self.historical_view()
        annual, annual_stats = self.annual_view()
        monthly, monthly_stats = self.monthly_view()
        day_points, day_stats = self.daily_view()
        return {
            "selection": self.selection.to_dict(),
            "project_name": display_name(self.selection.project, self.catalog, project_names),
            "system": self.system_label(),
            "timezone": daily.timezone if daily else DEFAULT_TIMEZONE,
            "axes": {axis: state.to_dict() for axis, state in self.axes.items()},
            "error": self.error or None,
            "options": {
                "nodes": self.node_options(),
                "years": self.year_options(),
                "months": self.month_options(),
                "days": self.day_options(),
            },
            "historical": {"points": [s.to_point() for s in historical], "stats": historical_stats.to_dict()},
            "annual": {"points": [row.to_point() for row in annual], "stats": annual_stats.to_dict()},
            "monthly": {
                "points": [row.to_point() for row in monthly],
                "stats": monthly_stats.to_dict(),
                "metadata": hourly.metadata if hourly else None,
            },
            "daily": {"points": [p.to_point() for p in day_points], "stats": day_stats.to_dict()},
            "skipped_rows": {
                "daily": daily.skipped_count if daily else 0,
                "hourly": hourly.skipped_count if hourly else 0,
            },
        }
