from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SUPABASE_URL = "https://placeholder.supabase.co"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""  # optional; enables local signature checks
    APP_PUBLIC_URL: str = "http://localhost:8000"
    OAUTH_PROVIDERS: str = "google"  # comma separated
    SESSION_COOKIE_SECURE: bool = False
    LOG_LEVEL: str = "info"

    @field_validator("SUPABASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("APP_PUBLIC_URL")
    @classmethod
    def validate_app_public_url(cls, v: str) -> str:
        value = v.rstrip("/")
        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError("APP_PUBLIC_URL must start with http:// or https://")
        return value

    @property
    def supabase_configured(self) -> bool:
        return bool(
            self.SUPABASE_URL
            and self.SUPABASE_ANON_KEY
            and self.SUPABASE_URL != PLACEHOLDER_SUPABASE_URL
        )

    @property
    def oauth_providers(self) -> frozenset[str]:
        return frozenset(
            p.strip().lower() for p in self.OAUTH_PROVIDERS.split(",") if p.strip()
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
