"""Client Configuration — pydantic-settings for the async chat client.

Invariants:
    - Environment variables use the CHAT_CLIENT_ prefix
    - get_client_settings() is cached (lru_cache) — single instance per process
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from chatstream.core.domain_types import SESSION_NAME_MAX_LENGTH

DEFAULT_ERROR_REPLY = "抱歉，发生了错误，请稍后重试。"


class ClientSettings(BaseSettings):
    """Chat client settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CLIENT_", env_file=".env", case_sensitive=False,
        extra="ignore",
    )

    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 300.0
    session_name_max_length: int = SESSION_NAME_MAX_LENGTH
    error_message: str = DEFAULT_ERROR_REPLY


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
