from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from models import DEFAULT_TIMEZONE
from projects import DEFAULT_PROJECT, PROJECT_KEYS


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class AppConfigModel(StrictModel):
    data_base_url: str = Field(default="", validation_alias=AliasChoices("data_base_url", "VITE_DATA_BASE_URL"))
    default_project: str = Field(default=DEFAULT_PROJECT, min_length=1)
    timezone: str = Field(default=DEFAULT_TIMEZONE, min_length=1)
    cache_bust: bool = False
    request_timeout_seconds: float | None = Field(default=None, gt=0.0)
    cache_ttl_seconds: int = Field(default=0, ge=0)
    projects: dict[str, str] = Field(default_factory=dict)

    @field_validator("data_base_url")
    @classmethod
    def strip_trailing_slash(cls, value):
        return value.rstrip("/")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value):
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("projects", mode="before")
    @classmethod
    def drop_empty_names(cls, value):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items() if v not in (None, "")}
        return value

    @model_validator(mode="after")
    def validate_default_project(self):
        known = set(PROJECT_KEYS) | set(self.projects)
        if self.default_project not in known:
            raise ValueError(f"default_project must be one of: {', '.join(sorted(known))}")
        return self
