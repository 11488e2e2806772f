from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from errors import ValidationError


DEFAULT_TIMEZONE = "America/Mexico_City"


@dataclass(slots=True)
class NodeEntry:
    node: str
    system: str = ""
    months: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Catalog:
    project: str
    default_node: str = ""
    nodes: list[NodeEntry] = field(default_factory=list)
    display_name: str | None = None

    def find_node(self, node_id: str) -> NodeEntry | None:
        for entry in self.nodes:
            if entry.node == node_id:
                return entry
        return None

    def months_for(self, node_id: str) -> list[str]:
        # Month keys are not guaranteed to arrive sorted.
        entry = self.find_node(node_id)
        return sorted(entry.months) if entry else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "defaultNode": self.default_node,
            "displayName": self.display_name,
            "nodes": [asdict(entry) for entry in self.nodes],
        }


@dataclass(slots=True)
class DailyRow:
    date: str
    count: int
    avg: float
    min: float
    max: float

    @property
    def year(self) -> str:
        return self.date[:4]

    def to_point(self) -> dict[str, Any]:
        return {"t": self.date, "avg": self.avg, "min": self.min, "max": self.max, "n": self.count}


@dataclass(slots=True)
class HourlyRow:
    date: str
    hour: int
    price: float

    @property
    def label(self) -> str:
        return f"{self.date} {self.hour:02d}:00"

    def to_point(self) -> dict[str, Any]:
        return {"d": self.date, "h": self.hour, "t": self.label, "pml": self.price}


@dataclass(slots=True)
class HourlyPoint:
    hour: int
    price: float

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:00"

    def to_point(self) -> dict[str, Any]:
        return {"t": self.label, "pml": self.price, "hour": self.hour}


@dataclass(slots=True)
class MonthlySummary:
    month: str  # YYYY-MM
    avg: float
    min: float
    max: float
    n: int

    @property
    def year(self) -> str:
        return self.month[:4]

    def to_point(self) -> dict[str, Any]:
        return {"t": self.month, "avg": self.avg, "min": self.min, "max": self.max, "n": self.n, "year": self.year}


@dataclass(slots=True)
class Stats:
    min: float | None = None
    max: float | None = None
    avg: float | None = None
    n: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max, "avg": self.avg, "n": self.n}


@dataclass(slots=True)
class DailySeries:
    timezone: str = DEFAULT_TIMEZONE
    rows: list[DailyRow] = field(default_factory=list)
    skipped: list[ValidationError] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(slots=True)
class HourlySeries:
    metadata: dict[str, Any] = field(default_factory=dict)
    rows: list[HourlyRow] = field(default_factory=list)
    skipped: list[ValidationError] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(slots=True)
class Selection:
    project: str = ""
    node: str = ""
    year: str = ""
    month: str = ""  # YYYY_MM
    day: str = ""  # YYYY-MM-DD

    def to_dict(self) -> dict[str, str]:
        return asdict(self)
