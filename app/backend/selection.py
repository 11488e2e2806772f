from dataclasses import replace

from aggregation import day_options, month_key_from_date, year_from_month_key
from series import DATE_RE


def default_node(catalog):
    if catalog is None or not catalog.nodes:
        return ""
    if catalog.default_node and catalog.find_node(catalog.default_node):
        return catalog.default_node
    return catalog.nodes[0].node


def catalog_defaults(catalog):
    """Initial node, month and year for a freshly loaded catalog.

    Month is the latest month key listed for the default node and year
    follows it; year is None when the node lists no months.
    """
    node = default_node(catalog)
    months = catalog.months_for(node) if node else []
    month = months[-1] if months else ""
    return {"node": node, "month": month, "year": year_from_month_key(month) if month else None}


def year_after_daily(daily_rows, prior_year):
    if not daily_rows:
        return prior_year
    return daily_rows[-1].year


def day_after_hourly(hourly_rows, prior_day):
    days = day_options(hourly_rows)
    if prior_day and prior_day in days:
        return prior_day
    return days[0] if days else ""


def drill_historical(selection, point):
    """Zoom from a monthly-rollup point into its year."""
    year = (point or {}).get("year")
    if not year:
        t = (point or {}).get("t")
        year = str(t)[:4] if t else None
    if not year:
        return selection
    return replace(selection, year=str(year))


def drill_annual(selection, point, known_months):
    """Zoom from a daily point into its month and day.

    The month only moves when the node lists it; the day is always taken.
    """
    day = (point or {}).get("t")
    if not isinstance(day, str) or not DATE_RE.match(day):
        return selection
    month_key = month_key_from_date(day)
    month = month_key if month_key in known_months else selection.month
    return replace(selection, month=month, day=day)


def drill_monthly(selection, point):
    day = (point or {}).get("d")
    if not isinstance(day, str) or not DATE_RE.match(day):
        return selection
    return replace(selection, day=day)
