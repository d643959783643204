"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env and storage from the project root regardless of CWD
_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Data backend
    database_url: str = "sqlite+aiosqlite:///./estate_platform.db"

    # Auth / JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 1440
    bcrypt_rounds: int = 12
    session_memo_size: int = 1024

    # Bootstrap admin (created on startup when both are set)
    admin_email: str = ""
    admin_password: str = ""

    # Object storage
    storage_root: str = str(_PROJECT_ROOT / "storage")
    storage_url_prefix: str = "/storage"

    # Listings
    property_list_limit: int = 1000
    search_page_size: int = 30
    admin_page_size: int = 20

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
