from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DOCS_URL = "https://blog.utgw.net/entry/patchrss"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_BACKEND_DIR / ".env"), ".env"),
        extra="ignore",
    )

    port: int = 3000
    bind_host: str = "0.0.0.0"
    # host:port this service answers on; requests targeting it are rejected as loops.
    self_host: str = Field(
        default="localhost:3000",
        validation_alias=AliasChoices("SELF_HOST", "PATCHRSS_HOST"),
    )
    request_timeout_msec: int = Field(
        default=10_000,
        validation_alias=AliasChoices("REQUEST_TIMEOUT_MSEC", "HONO_REQUEST_TIMEOUT_MSEC"),
    )
    fetch_timeout_msec: int = 5_000
    max_body_bytes: int = 10 * 1024 * 1024
    max_redirects: int = 10
    docs_url: str = DEFAULT_DOCS_URL
    log_level: str = "info"

    @property
    def user_agent(self) -> str:
        return f"patchrss (+{self.docs_url})"


settings = Settings()
