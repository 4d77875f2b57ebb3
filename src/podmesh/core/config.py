"""
podmesh Configuration

Loads configuration from environment variables and a local .env file.
"""

from functools import lru_cache
from urllib.parse import urljoin

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """podmesh settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PODMESH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage server
    server_url: str = "http://localhost:3000"
    directory_path: str = "directory/agents.ttl"

    # Acting agent
    web_id: str = ""
    pod_url: str = ""

    # Credentials: a static bearer token, or client credentials exchanged
    # at the server's token endpoint
    access_token: str = ""
    client_id: str = ""
    client_secret: str = ""

    http_timeout: float = 30.0
    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_directory_url(settings: Settings | None = None) -> str:
    """Get the shared agent directory URL on the configured server."""
    settings = settings or get_settings()
    base = settings.server_url if settings.server_url.endswith("/") else settings.server_url + "/"
    return urljoin(base, settings.directory_path)


def get_inbox_url(settings: Settings | None = None) -> str:
    """Get the acting agent's inbox container URL."""
    settings = settings or get_settings()
    if not settings.pod_url:
        raise ValueError("PODMESH_POD_URL is not set")
    pod_url = settings.pod_url if settings.pod_url.endswith("/") else settings.pod_url + "/"
    return urljoin(pod_url, "inbox/")
