from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (prefix LEGION_)."""

    model_config = {"env_prefix": "LEGION_", "case_sensitive": False}

    # Render hands us DATABASE_URL without a prefix
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    storage_backend: str = Field(
        default="database",
        description="database (SQLAlchemy) or memory (process-local, lost on restart)",
    )
    seed_default_bosses: bool = True

    admin_name: str = Field(
        default="KURAMA",
        description="System admin account, hidden from the roster",
    )
    admin_password: Optional[str] = Field(
        default=None,
        description="When set, the admin account is created on startup if missing",
    )
    bcrypt_rounds: int = 10

    activity_default_limit: Optional[int] = None
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
