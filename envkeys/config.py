import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, model_validator

load_dotenv()


_TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in _TRUTHY_VALUES


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str | None = os.getenv("DATABASE_URL")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Authorized keys
    authorized_keys_config_key: str = os.getenv("AUTHORIZED_KEYS_CONFIG_KEY", "authorized-keys")
    default_key_user: str = os.getenv("DEFAULT_KEY_USER", "admin")

    # Identity import providers
    import_timeout_seconds: float = float(os.getenv("IMPORT_TIMEOUT_SECONDS", "10"))
    launchpad_url: str = os.getenv("LAUNCHPAD_URL", "https://launchpad.net")
    github_url: str = os.getenv("GITHUB_URL", "https://github.com")

    # Runtime flags
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    testing: bool = _env_bool("TESTING")

    @model_validator(mode="after")
    def require_database_url_when_not_testing(self) -> "Settings":
        if not self.testing and not (self.database_url and self.database_url.strip()):
            raise ValueError("DATABASE_URL must be set when TESTING is false")
        return self


settings = Settings()
