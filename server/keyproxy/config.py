from functools import lru_cache
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=3001, validation_alias=AliasChoices("port", "server_port"))
    allowed_origins: List[str] = ["*"]
    static_dir: str = "public"
    log_level: str = "INFO"

    # Upstream providers
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    anthropic_probe_model: str = "claude-3-haiku-20240307"
    max_tokens: int = 4000

    connect_timeout: float = 10.0
    read_timeout: float = 120.0

    model_config = SettingsConfigDict(
        # Unprefixed OPENAI_BASE_URL / ANTHROPIC_BASE_URL belong to the provider SDKs
        env_prefix="KEYPROXY_",
        case_sensitive=False,
        env_file=(".env",),
        extra="ignore",  # ignore env vars not defined as fields
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
