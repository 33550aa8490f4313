"""Lumi settings, read from the environment (and ``.env`` when present).

Only DATABASE_URL is mandatory everywhere. Staging and prod also need the
Spotify OAuth credentials, because jam sessions cannot start without them.
Blob storage falls back to an in-memory store unless both SUPABASE_URL and
SUPABASE_SERVICE_KEY are set. The Celery broker and result backend default to
REDIS_URL.

Every chat timing rule (page size, presence windows, vote expiry, typing
staleness) and both upload limits are settings as well, so tests can shrink
them through the environment followed by ``clear_settings_cache()``.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Environment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


DEPLOYED_ENVIRONMENTS = frozenset({Environment.STAGING, Environment.PROD})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    lumi_env: Environment = Field(default=Environment.LOCAL, alias="LUMI_ENV")
    database_url: str = Field(alias="DATABASE_URL")

    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    spotify_client_id: str | None = Field(default=None, alias="SPOTIFY_CLIENT_ID")
    spotify_client_secret: str | None = Field(default=None, alias="SPOTIFY_CLIENT_SECRET")
    spotify_redirect_uri: str = Field(
        default="http://localhost:8000/spotify-auth/callback", alias="SPOTIFY_REDIRECT_URI"
    )
    spotify_timeout_s: float = Field(default=15.0, alias="SPOTIFY_TIMEOUT_S")
    # Delay after "next" before currently-playing reports the new track
    spotify_skip_settle_s: float = Field(default=1.0, alias="SPOTIFY_SKIP_SETTLE_S")

    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    image_bucket: str = Field(default="chat-images", alias="IMAGE_BUCKET")
    avatar_bucket: str = Field(default="user-avatars", alias="AVATAR_BUCKET")
    max_image_bytes: int = Field(default=10 * MB, alias="MAX_IMAGE_BYTES")
    max_avatar_bytes: int = Field(default=2 * MB, alias="MAX_AVATAR_BYTES")

    message_page_size: int = Field(default=50, alias="MESSAGE_PAGE_SIZE")
    presence_online_window_s: int = Field(default=30, alias="PRESENCE_ONLINE_WINDOW_S")
    presence_recent_window_s: int = Field(default=300, alias="PRESENCE_RECENT_WINDOW_S")
    typing_stale_s: int = Field(default=10, alias="TYPING_STALE_S")
    vote_default_expiry_s: int = Field(default=30, alias="VOTE_DEFAULT_EXPIRY_S")

    @model_validator(mode="after")
    def require_spotify_when_deployed(self) -> "Settings":
        if not self.is_deployed:
            return self
        missing = [
            name
            for name, value in (
                ("SPOTIFY_CLIENT_ID", self.spotify_client_id),
                ("SPOTIFY_CLIENT_SECRET", self.spotify_client_secret),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                f"LUMI_ENV={self.lumi_env.value} requires Spotify settings: {', '.join(missing)}"
            )
        return self

    @property
    def is_deployed(self) -> bool:
        """True for staging and prod, which share real databases and buckets."""
        return self.lumi_env in DEPLOYED_ENVIRONMENTS

    @property
    def effective_celery_broker_url(self) -> str | None:
        return self.celery_broker_url or self.redis_url

    @property
    def effective_celery_result_backend(self) -> str | None:
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
