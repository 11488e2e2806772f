import math

from models import HourlyPoint, MonthlySummary, Stats


def month_key_from_date(date_str):
    # "YYYY-MM-DD" -> "YYYY_MM"
    return f"{date_str[:4]}_{date_str[5:7]}"


def year_from_month_key(month_key):
    return str(month_key)[:4]


def monthly_rollup(daily_rows):
    """Roll daily rows up into one summary per calendar month.

    A month's avg is the unweighted mean of its daily averages, not the
    mean of the underlying hourly prices.
    """
    buckets = {}
    for row in daily_rows:
        ym = row.date[:7]
        bucket = buckets.get(ym)
        if bucket is None:
            buckets[ym] = {"sum_avg": row.avg, "n": 1, "min": row.min, "max": row.max}
            continue
        bucket["sum_avg"] += row.avg
        bucket["n"] += 1
        bucket["min"] = min(bucket["min"], row.min)
        bucket["max"] = max(bucket["max"], row.max)
    return [
        MonthlySummary(month=ym, avg=b["sum_avg"] / b["n"], min=b["min"], max=b["max"], n=b["n"])
        for ym, b in sorted(buckets.items())
    ]


def annual_slice(daily_rows, year):
    prefix = f"{year}-"
    return [row for row in daily_rows if row.date.startswith(prefix)]


def daily_slice(hourly_rows, day):
    if not day:
        return []
    matching = [row for row in hourly_rows if row.date == day]
    matching.sort(key=lambda row: row.hour)
    return [HourlyPoint(hour=row.hour, price=row.price) for row in matching]


def _as_finite(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def compute_stats(values):
    valid = [number for number in (_as_finite(v) for v in values or []) if number is not None]
    if not valid:
        return Stats()
    return Stats(min=min(valid), max=max(valid), avg=sum(valid) / len(valid), n=len(valid))


def format_amount(value):
    if value is None:
        return None
    return f"{value:,.2f}"


def format_stats(stats):
    return {
        "min": format_amount(stats.min),
        "max": format_amount(stats.max),
        "avg": format_amount(stats.avg),
        "n": stats.n,
    }


def year_options(daily_rows):
    return sorted({row.year for row in daily_rows})


def day_options(hourly_rows):
    return sorted({row.date for row in hourly_rows})
