"""
Runtime settings for dbrunner, read from the environment (and ``.env``).

Imported everywhere as ``from dbrunner.core.config import settings``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "dbrunner"

    # Connection acquisition
    EXTERNAL_DB_CONNECT_TIMEOUT: int = Field(default=10, ge=1)
    # Per-statement timeout (seconds) applied as a session setting; None = off
    EXTERNAL_DB_STATEMENT_TIMEOUT: float | None = None

    # Batch engine
    BATCH_POOL_SIZE: int = Field(default=4, ge=1)
    BATCH_TIMEOUT_SECONDS: float = Field(default=300.0, gt=0)

    # Raise instead of falling back to Mutation for unrecognised statements
    STRICT_CLASSIFICATION: bool = False

    # Optional JSON file overlaying the built-in vendor configuration
    VENDOR_CONFIG_FILE: str | None = None


settings = Settings()
