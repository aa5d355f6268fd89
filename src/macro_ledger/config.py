"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    firebase_api_key: str
    firebase_project_id: str = "sbs-diet-app"
    firestore_base_url: str = "https://firestore.googleapis.com/v1"
    identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
    secure_token_base_url: str = "https://securetoken.googleapis.com/v1"
    ios_bundle_id: str = "com.sbs.diet"
    refresh_token: str | None = None
    email: str | None = None
    password: str | None = None
    search_base_url: str | None = None
    search_api_key: str | None = None
    search_common_collection: str = "common_foods"
    search_branded_collection: str = "branded_foods"
    request_timeout_seconds: float = 15.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="MF_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def has_credentials(self) -> bool:
        """Return True when a refresh token or an email/password pair is set."""
        if self.refresh_token:
            return True
        return bool(self.email and self.password)
