"""
Culqi gateway settings using pydantic-settings v2 with nested env keys.

Values are read once (``CULQI__SECRET_KEY``, ``CULQI__DEV_EMAIL`` ...) and the
resulting object is frozen; it is injected into the gateway client instead of
being read from module state at call time.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, ConfigDict, Field


TEST_SECRET_KEY_PREFIX = "sk_test_"


class GatewayTimeouts(BaseModel):
    model_config = ConfigDict(frozen=True)

    connect: Optional[float] = None
    read: Optional[float] = None
    write: Optional[float] = None
    total: Optional[float] = None


class CulqiSettings(BaseSettings):
    secret_key: str = ""
    dev_email: Optional[str] = None
    app_env: Optional[str] = None
    log_requests: bool = True
    capture: bool = False
    base_url: str = "https://api.culqi.com/v2"
    # Transport defaults apply unless explicitly configured
    timeouts: GatewayTimeouts = Field(default_factory=GatewayTimeouts)

    model_config = SettingsConfigDict(
        env_prefix="CULQI__",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
        frozen=True,
    )

    @property
    def is_test_env(self) -> bool:
        """Sandbox mode is inferred from the secret key prefix."""
        return self.secret_key.startswith(TEST_SECRET_KEY_PREFIX)


def get_culqi_settings() -> CulqiSettings:
    return CulqiSettings()
