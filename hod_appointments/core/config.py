from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False
    auto_create_tables: bool = False
    # Upper bound for a single store round-trip; exceeded calls raise StoreError
    store_timeout_seconds: float = 5.0

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"
    bcrypt_rounds: int = 12

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Office hours grid: hourly slots, end hour exclusive
    business_start_hour: int = 9
    business_end_hour: int = 17

    # "permissive" allows any status change, "strict" follows the review workflow
    status_transition_policy: Literal["permissive", "strict"] = "permissive"

    # Account registered with this email gets the department head role
    hod_email: str = ""

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
