from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping deployment config out of code.

    Algorithmic constants (weights, block sizes, jitter) live in `tuning.py`;
    this class only carries what differs between deployments.
    """

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ors_base_url: str = Field(default="https://api.openrouteservice.org/v2", alias="ORS_BASE_URL")
    ors_api_key: str = Field(default="", alias="ORS_API_KEY")
    use_real_provider: bool = Field(default=True, alias="USE_REAL_PROVIDER")
    provider_timeout_s: float = Field(default=8.0, gt=0.0, le=120.0, alias="PROVIDER_TIMEOUT_S")

    proximity_gateway_url: str = Field(default="", alias="PROXIMITY_GATEWAY_URL")
    gateway_timeout_s: float = Field(default=5.0, gt=0.0, le=120.0, alias="GATEWAY_TIMEOUT_S")
    safety_buffer_radius_m: float = Field(default=300.0, gt=0.0, le=5000.0, alias="SAFETY_BUFFER_RADIUS_M")
    synthetic_points_on_gateway_failure: bool = Field(
        default=False,
        alias="SYNTHETIC_POINTS_ON_GATEWAY_FAILURE",
    )
    alternative_route_count: int = Field(default=3, ge=1, le=5, alias="ALTERNATIVE_ROUTE_COUNT")

    out_dir: str = Field(default="out", alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @model_validator(mode="after")
    def _strip_urls(self) -> "Settings":
        self.ors_base_url = self.ors_base_url.strip().rstrip("/")
        self.proximity_gateway_url = self.proximity_gateway_url.strip().rstrip("/")
        return self


settings = Settings()
