"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SHEETVIEW__SERVER__PORT=9090, SHEET_ID=...)
  2. sheetview.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

Spreadsheet identifiers and service-account credentials use the plain
variable names the deployment already sets (SHEET_ID, SOS_SHEET_ID,
GOOGLE_SERVICE_ACCOUNT_EMAIL, GOOGLE_PRIVATE_KEY). They are optional here;
request handlers report a missing one as a configuration error.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_SURROUNDING_QUOTES = re.compile(r"^[\"']|[\"']$")


def _find_config_file() -> str | None:
    """Return the path of the first sheetview.yaml found, or None."""
    candidates = [
        Path("sheetview.yaml"),
        Path(platformdirs.user_config_dir("sheetview")) / "sheetview.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class CacheSettings(BaseModel):
    ttl_seconds: int = 300
    # None keeps serving the last snapshot for as long as upstream keeps failing.
    max_stale_seconds: int | None = None
    serve_stale: bool = False


class FetcherSettings(BaseModel):
    timeout_seconds: float = 30.0
    user_agent: str = "sheetview/1.0"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SHEETVIEW__SERVER__PORT=9090
        env_prefix="SHEETVIEW__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    sheet_id: str | None = Field(
        default=None, validation_alias=AliasChoices("SHEET_ID", "sheet_id")
    )
    sos_sheet_id: str | None = Field(
        default=None, validation_alias=AliasChoices("SOS_SHEET_ID", "sos_sheet_id")
    )
    google_service_account_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_SERVICE_ACCOUNT_EMAIL", "google_service_account_email"
        ),
    )
    google_private_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_PRIVATE_KEY", "google_private_key"),
    )

    server: ServerSettings = ServerSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    logging: LoggingSettings = LoggingSettings()

    @field_validator("sheet_id", "sos_sheet_id", "google_service_account_email")
    @classmethod
    def _strip_value(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _SURROUNDING_QUOTES.sub("", v.strip()).strip() or None

    @field_validator("google_private_key")
    @classmethod
    def _decode_private_key(cls, v: str | None) -> str | None:
        # .env files often carry the PEM on one line with literal "\n" escapes
        if v is None:
            return None
        return _SURROUNDING_QUOTES.sub("", v.strip()).replace("\\n", "\n") or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
