import math
import re
from collections.abc import Mapping, Sequence

from errors import DecodeError, ValidationError
from models import DEFAULT_TIMEZONE, Catalog, DailyRow, DailySeries, HourlyRow, HourlySeries, NodeEntry


DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_KEY_RE = re.compile(r"^\d{4}_\d{2}$")

# Historical daily row layouts. The legacy export wrote avg first and the
# day count last; newer exports declare their column order explicitly.
DAILY_COLUMNS_LEGACY = ("date", "avg", "min", "max", "count")
DAILY_COLUMNS_COUNT_FIRST = ("date", "count", "avg", "min", "max")
DAILY_COLUMN_ALIASES = {
    "d": "date",
    "date": "date",
    "n": "count",
    "count": "count",
    "avg": "avg",
    "mean": "avg",
    "min": "min",
    "max": "max",
}
HOURLY_COLUMN_ALIASES = {
    "d": "date",
    "date": "date",
    "h": "hour",
    "hour": "hour",
    "pml": "price",
    "price": "price",
}
HOURLY_METADATA_FIELDS = ("project", "displayName", "node", "rawNode", "system", "month")


def _is_sequence(value):
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _coerce_float(value, field_name):
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} is not numeric: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} is not numeric: {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{field_name} is not finite: {value!r}")
    return number


def _coerce_int(value, field_name):
    number = _coerce_float(value, field_name)
    if not number.is_integer():
        raise ValueError(f"{field_name} is not an integer: {value!r}")
    return int(number)


def _coerce_date(value):
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError(f"date is not YYYY-MM-DD: {value!r}")
    return value


def _normalize_columns(columns, aliases):
    if not _is_sequence(columns):
        raise DecodeError(f"Column declaration must be a list, got {type(columns).__name__}.")
    normalized = []
    for column in columns:
        key = aliases.get(str(column).strip().lower())
        if key is None:
            raise DecodeError(f"Unknown column name: {column!r}")
        normalized.append(key)
    return tuple(normalized)


def _row_to_mapping(row, columns, aliases):
    """Name the fields of one row, either from its own keys or the declared columns."""
    if isinstance(row, Mapping):
        named = {}
        for key, value in row.items():
            canonical = aliases.get(str(key).strip().lower())
            if canonical:
                named[canonical] = value
        return named
    if _is_sequence(row):
        return {name: row[idx] for idx, name in enumerate(columns) if idx < len(row)}
    raise ValueError(f"row must be a list or object, got {type(row).__name__}")


def resolve_daily_columns(payload):
    """Pick the column order for positional daily rows.

    The order is taken from what the producer declares (``columns`` /
    ``fields``, or a ``schema`` version), never inferred from the values.
    Payloads that declare nothing use the legacy layout.
    """
    declared = payload.get("columns", payload.get("fields"))
    if declared is not None:
        return _normalize_columns(declared, DAILY_COLUMN_ALIASES)
    schema = payload.get("schema")
    if schema is not None and str(schema).strip().lower() in {"2", "v2", "count-first"}:
        return DAILY_COLUMNS_COUNT_FIRST
    return DAILY_COLUMNS_LEGACY


def _extract_rows(payload, keys):
    if not isinstance(payload, Mapping):
        raise DecodeError(f"Series payload must be a JSON object, got {type(payload).__name__}.")
    for key in keys:
        if key in payload:
            rows = payload[key]
            if not _is_sequence(rows):
                raise DecodeError(f"Series field '{key}' must be a list, got {type(rows).__name__}.")
            return rows
    raise DecodeError(f"Series payload has no '{keys[0]}' field.")


def parse_daily_row(row, columns, index=0):
    try:
        fields = _row_to_mapping(row, columns, DAILY_COLUMN_ALIASES)
        count_raw = fields.get("count")
        return DailyRow(
            date=_coerce_date(fields.get("date")),
            count=0 if count_raw is None else max(0, _coerce_int(count_raw, "count")),
            avg=_coerce_float(fields.get("avg"), "avg"),
            min=_coerce_float(fields.get("min"), "min"),
            max=_coerce_float(fields.get("max"), "max"),
        )
    except ValueError as exc:
        raise ValidationError(index, row, str(exc)) from exc


def parse_hourly_row(row, index=0):
    try:
        fields = _row_to_mapping(row, ("date", "hour", "price"), HOURLY_COLUMN_ALIASES)
        return HourlyRow(
            date=_coerce_date(fields.get("date")),
            hour=_coerce_int(fields.get("hour"), "hour"),
            price=_coerce_float(fields.get("price"), "price"),
        )
    except ValueError as exc:
        raise ValidationError(index, row, str(exc)) from exc


def parse_daily_payload(payload, default_timezone=DEFAULT_TIMEZONE):
    rows_raw = _extract_rows(payload, ("daily", "rows"))
    columns = resolve_daily_columns(payload)
    rows = []
    skipped = []
    for index, raw in enumerate(rows_raw):
        try:
            rows.append(parse_daily_row(raw, columns, index))
        except ValidationError as exc:
            skipped.append(exc)
    # Stored order is usually ascending but range slicing depends on it.
    rows.sort(key=lambda row: row.date)
    timezone = payload.get("tz") or payload.get("timezone") or default_timezone
    return DailySeries(timezone=str(timezone), rows=rows, skipped=skipped)


def parse_hourly_payload(payload):
    rows_raw = _extract_rows(payload, ("rows",))
    rows = []
    skipped = []
    for index, raw in enumerate(rows_raw):
        try:
            rows.append(parse_hourly_row(raw, index))
        except ValidationError as exc:
            skipped.append(exc)
    metadata = {key: payload.get(key) for key in HOURLY_METADATA_FIELDS}
    return HourlySeries(metadata=metadata, rows=rows, skipped=skipped)


def parse_catalog(project, payload):
    if not isinstance(payload, Mapping):
        raise DecodeError(f"Catalog for {project} must be a JSON object, got {type(payload).__name__}.")
    nodes_raw = payload.get("nodes") or []
    if not _is_sequence(nodes_raw):
        raise DecodeError(f"Catalog 'nodes' for {project} must be a list.")
    nodes = []
    seen = set()
    for entry in nodes_raw:
        if not isinstance(entry, Mapping):
            continue
        node_id = entry.get("node")
        if not isinstance(node_id, str) or not node_id or node_id in seen:
            continue
        seen.add(node_id)
        months_raw = entry.get("months") or []
        months = [m for m in months_raw if isinstance(m, str) and MONTH_KEY_RE.match(m)] if _is_sequence(months_raw) else []
        nodes.append(NodeEntry(node=node_id, system=str(entry.get("system") or ""), months=months))
    default_node = payload.get("defaultNode")
    return Catalog(
        project=project,
        default_node=default_node if isinstance(default_node, str) else "",
        nodes=nodes,
        display_name=payload.get("displayName") if isinstance(payload.get("displayName"), str) else None,
    )
