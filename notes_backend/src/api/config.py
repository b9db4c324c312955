import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings read from environment variables (DATABASE_URL, SECRET_KEY, ...).

    The signing secret is read once here and never rotated for the lifetime
    of the process.
    """

    model_config = SettingsConfigDict(case_sensitive=False)

    env: str = "dev"
    database_url: str = "sqlite:///./notes.db"

    # JWT settings
    secret_key: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Password hashing work factor
    bcrypt_rounds: int = 12

    frontend_origin: str = "http://localhost:3000"
    log_level: str = "INFO"
    log_format: str = "json"

    # Answer non-owner access to a note as 404 instead of 403
    hide_foreign_notes: bool = True

    @model_validator(mode="after")
    def ensure_secret_key(self):
        """Generate a per-process secret in dev; require an explicit one elsewhere."""
        if not self.secret_key:
            if self.env != "dev":
                raise ValueError("SECRET_KEY must be set outside the dev environment")
            self.secret_key = secrets.token_urlsafe(32)
        return self


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
