from __future__ import annotations

import re

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class Settings(BaseSettings):
    FUNNEL_DB_URL: str = "sqlite:///./funnel_builder.db"
    FUNNEL_API_BASE_URL: AnyHttpUrl = "http://localhost:8000"
    # Page catalog is owned by the pages service; defaults to the funnel API host.
    PAGE_CATALOG_BASE_URL: AnyHttpUrl | None = None
    REQUEST_TIMEOUT_SECONDS: float = 20.0

    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    SIMULATION_TICK_SECONDS: float = 1.0
    PREVIEW_PRIMARY_COLOR: str = "#667eea"

    @field_validator("BACKEND_CORS_ORIGINS")
    @classmethod
    def validate_origins(cls, value: str) -> str:
        origins = [origin.strip() for origin in value.split(",") if origin.strip()]
        return ",".join(origins)

    @field_validator("PREVIEW_PRIMARY_COLOR")
    @classmethod
    def validate_primary_color(cls, value: str) -> str:
        if not _HEX_COLOR_RE.match(value.strip()):
            raise ValueError("PREVIEW_PRIMARY_COLOR must be a hex color such as #667eea")
        return value.strip()

    @field_validator("SIMULATION_TICK_SECONDS")
    @classmethod
    def validate_tick(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SIMULATION_TICK_SECONDS must be positive")
        return value

    @property
    def funnel_api_base_url(self) -> str:
        return str(self.FUNNEL_API_BASE_URL).rstrip("/")

    @property
    def page_catalog_base_url(self) -> str:
        if self.PAGE_CATALOG_BASE_URL is None:
            return self.funnel_api_base_url
        return str(self.PAGE_CATALOG_BASE_URL).rstrip("/")

    @property
    def cors_origins(self) -> list[str]:
        return sorted({origin for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin})

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
