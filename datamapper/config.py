"""
Configuration for datamapper.

Two layers live here:

- `Settings`: application settings loaded from environment variables / `.env`
  with Pydantic Settings (log level, where the connection file lives, retry
  policy for connecting).
- `DatabaseConfig`: connection settings read from a line-oriented
  `key=value` file (`db_config.ini` by default). `host`, `user`, `password`
  and `database` are required; `port` defaults to "3306".
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from datamapper.errors import ConfigurationInvalid
from datamapper.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_CONFIG_FILE = "db_config.ini"
DEFAULT_PORT = "3306"
REQUIRED_KEYS = ("host", "user", "password", "database")


class Settings(BaseSettings):
    # Connection file
    db_config_file: Path = Field(Path(DEFAULT_CONFIG_FILE), alias="DB_CONFIG_FILE")
    db_connect_attempts: int = Field(1, ge=1, alias="DB_CONNECT_ATTEMPTS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


class DatabaseConfig(BaseModel):
    """
    Validated connection settings.

    `port` stays a string, as read from the file; drivers convert it when
    connecting.
    """

    host: str
    user: str
    password: str = Field(..., repr=False)
    database: str
    port: str = DEFAULT_PORT
    driver: str = "mysql"
    connect_timeout: Optional[int] = Field(None, gt=0)

    model_config = {
        "frozen": True,
        "str_strip_whitespace": True,
        "extra": "ignore",
    }

    @field_validator("host", "user", "password", "database")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _default_port(cls, value: Optional[str]) -> str:
        if value is None or str(value).strip() == "":
            return DEFAULT_PORT
        value = str(value).strip()
        if not value.isdigit():
            raise ValueError(f"port must be numeric, got {value!r}")
        return value

    @field_validator("driver", mode="before")
    @classmethod
    def _normalize_driver(cls, value: Optional[str]) -> str:
        if value is None or str(value).strip() == "":
            return "mysql"
        return str(value).strip().lower()

    @field_validator("connect_timeout", mode="before")
    @classmethod
    def _blank_timeout(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "DatabaseConfig":
        """
        Build a config from a raw key/value mapping.

        Raises
        ------
        ConfigurationInvalid
            If a required key is missing or empty, or a value is malformed.
        """
        missing = [key for key in REQUIRED_KEYS if not (values.get(key) or "").strip()]
        if missing:
            raise ConfigurationInvalid(f"missing required keys: {', '.join(missing)}")
        try:
            return cls.model_validate(dict(values))
        except ValidationError as exc:
            raise ConfigurationInvalid(str(exc)) from exc

    @classmethod
    def from_file(cls, path: Path | str) -> "DatabaseConfig":
        """Load and validate connection settings from a `key=value` file."""
        return cls.from_mapping(load_configurations(path))

    def safe_summary(self) -> str:
        """`user@host:port/database (driver)`, without the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database} ({self.driver})"


def parse_configurations(text: str) -> Dict[str, str]:
    """
    Parse `key=value` lines.

    Blank lines and lines starting with `#` are skipped, as are lines without
    `=`. Keys and values are trimmed; a repeated key keeps its last value.
    """
    configurations: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        configurations[key.strip()] = value.strip()
    return configurations


def load_configurations(path: Path | str = DEFAULT_CONFIG_FILE) -> Dict[str, str]:
    """
    Read a configuration file into a string mapping.

    Raises
    ------
    ConfigurationInvalid
        If the file cannot be read.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        log.error(
            "Could not open configuration file",
            extra={"path": str(config_path), "error": str(exc)},
        )
        raise ConfigurationInvalid(f"cannot read configuration file {config_path}: {exc}") from exc
    return parse_configurations(text)


def load_database_config(path: Path | str | None = None) -> DatabaseConfig:
    """
    Load connection settings from `path`, or from `Settings.db_config_file`.
    """
    return DatabaseConfig.from_file(path or get_settings().db_config_file)


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_PORT",
    "DatabaseConfig",
    "Settings",
    "get_settings",
    "load_configurations",
    "load_database_config",
    "parse_configurations",
]
