import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL

load_dotenv()


class ConfigurationError(ValueError):
    """Raised when the environment does not describe a usable database."""


def _env(name: str, default: Optional[str] = None):
    return field(default_factory=lambda: os.getenv(name, default))


def _env_int(name: str, default: str):
    def parse() -> int:
        raw = os.getenv(name, default)
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e

    return field(default_factory=parse)


def _env_flag(name: str, default: str = "False"):
    return field(default_factory=lambda: os.getenv(name, default).lower() in ("true", "1", "yes"))


@dataclass
class Settings:
    # API Settings
    api_host: str = _env("API_HOST", "0.0.0.0")
    api_port: int = _env_int("API_PORT", "8080")

    # Database Settings
    db_driver: str = _env("DB_DRIVER", "postgresql+psycopg2")
    db_user: Optional[str] = _env("DB_USER")
    db_password: Optional[str] = _env("DB_PASSWORD")
    db_name: Optional[str] = _env("DB_NAME")
    db_host: Optional[str] = _env("DB_HOST")
    db_port: Optional[str] = _env("DB_PORT")
    pool_max_open: int = _env_int("DB_POOL_MAX_OPEN", "10")
    pool_max_idle: int = _env_int("DB_POOL_MAX_IDLE", "5")

    # Application Settings
    app_name: str = _env("APP_NAME", "Bookshelf API")
    log_level: str = _env("LOG_LEVEL", "INFO")
    debug: bool = _env_flag("DEBUG")

    def database_url(self) -> URL:
        """Build the SQLAlchemy URL from the DB_* variables.

        All five credentials are mandatory; a missing one is a startup error.
        """
        required = {
            "DB_USER": self.db_user,
            "DB_PASSWORD": self.db_password,
            "DB_NAME": self.db_name,
            "DB_HOST": self.db_host,
            "DB_PORT": self.db_port,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(f"Database credentials not set: {', '.join(missing)}")
        try:
            port = int(self.db_port)
        except ValueError as e:
            raise ConfigurationError(f"DB_PORT must be an integer, got {self.db_port!r}") from e

        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=port,
            database=self.db_name,
        )
