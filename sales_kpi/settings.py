from __future__ import annotations

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field("sqlite+aiosqlite:///./sales_kpi.db", alias="DATABASE_URL")
    jwt_secret: str = Field(..., alias="JWT_SECRET")
    jwt_expire_days: int = Field(30, alias="JWT_EXPIRE_DAYS")

    # Denominator for project_rate, applied by every endpoint.
    project_rate_basis: Literal["deals", "meetings"] = Field("deals", alias="PROJECT_RATE_BASIS")

    allowed_origins_raw: str = Field("http://localhost:3000,http://localhost:5173", alias="ALLOWED_ORIGINS")
    log_level: str = Field("INFO", alias="KPI_LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_origins(self) -> List[str]:
        origins = []
        for item in self.allowed_origins_raw.split(","):
            item = item.strip().rstrip("/")
            if item and item not in origins:
                origins.append(item)
        return origins


def get_settings() -> Settings:
    return Settings()
