"""
Settings for the persista persistence shim.

Simple, reliable environment variable configuration. Connection parameters are
turned into validated pydantic models that ``persista.init()`` accepts.
"""

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load .env file for local development - look in current working directory
load_dotenv(".env")


def _get_version_from_pyproject() -> str:
    """
    Read version from pyproject.toml file.

    Returns:
        Version string from pyproject.toml, or fallback version
    """
    current_path = Path(__file__)
    for parent in [current_path.parent, *current_path.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            try:
                with open(pyproject_path, "rb") as f:
                    pyproject_data = tomllib.load(f)
                    version = pyproject_data.get("project", {}).get("version")
                    if version:
                        return version
            except (OSError, tomllib.TOMLDecodeError):
                continue

    return "0.1.0"


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class StoreConfig(BaseModel):
    """Options shared by every store."""

    model_config = ConfigDict(frozen=True)

    connect_timeout: float | None = Field(default=None, gt=0)
    statement_timeout: float | None = Field(default=None, gt=0)


class PostgresConfig(StoreConfig):
    """
    Connection parameters for the relational store.

    The URL is normalized to the asyncpg driver, so ``postgresql://`` and
    ``postgres://`` URLs are accepted as well as ``postgresql+asyncpg://``.
    """

    url: str
    pool_size: int = 20
    max_overflow: int = 40
    pool_timeout: int = 30
    pool_recycle: int = 3600
    pool_pre_ping: bool = True
    echo: bool = False
    # Set to 0 for pgBouncer transaction mode
    statement_cache_size: int | None = None

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, url: str) -> str:
        if url.startswith(("postgresql+asyncpg://", "postgres+asyncpg://")):
            return url

        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        raise ValueError(
            f"Invalid PostgreSQL URL: {url}. "
            "Expected postgresql://, postgres://, or postgresql+asyncpg://"
        )


class MongoConfig(StoreConfig):
    """Connection parameters for the document store."""

    host: str = "localhost"
    port: int = 27017
    database: str
    user: str | None = None
    password: str | None = None

    @property
    def has_credentials(self) -> bool:
        """Authentication only happens when both user and password are set."""
        return bool(self.user and self.password)


class Settings:
    """Application settings with environment-based configuration."""

    def __init__(self):
        # ================================================================
        # Version & General Configuration
        # ================================================================
        self.version: str = _get_version_from_pyproject()
        self.log_level: str = os.getenv("PERSISTA_LOG_LEVEL", "INFO")
        self.log_dir: str = os.getenv("PERSISTA_LOG_DIR", "./logs")
        self.environment: str = os.getenv("PERSISTA_ENVIRONMENT", "DEV")

        # ================================================================
        # Relational Store Configuration (Optional)
        # ================================================================
        self.database_url: str | None = os.getenv("DATABASE_URL")
        self.database_pool_size: int = int(os.getenv("DATABASE_POOL_SIZE", "20"))
        self.database_echo: bool = _flag("DATABASE_ECHO")

        # ================================================================
        # Document Store Configuration (Optional)
        # ================================================================
        self.mongo_host: str = os.getenv("MONGO_HOST", "localhost")
        self.mongo_port: int = int(os.getenv("MONGO_PORT", "27017"))
        self.mongo_db: str | None = os.getenv("MONGO_DB")
        self.mongo_user: str | None = os.getenv("MONGO_USER")
        self.mongo_password: str | None = os.getenv("MONGO_PASSWORD")

        # ================================================================
        # Timeouts (unset means wait forever)
        # ================================================================
        self.connect_timeout: float | None = _optional_float("PERSISTA_CONNECT_TIMEOUT")
        self.statement_timeout: float | None = _optional_float(
            "PERSISTA_STATEMENT_TIMEOUT"
        )

        self._validate_settings()

    def _validate_settings(self):
        """Validate settings values."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"PERSISTA_LOG_LEVEL must be one of {valid_levels}")
        self.log_level = self.log_level.upper()

        valid_environments = ["DEV", "PROD"]
        if self.environment.upper() not in valid_environments:
            self.environment = "DEV"  # Default fallback
        self.environment = self.environment.upper()

    @property
    def has_postgres(self) -> bool:
        """Check if the relational store is configured."""
        return self.database_url is not None

    @property
    def has_mongo(self) -> bool:
        """Check if the document store is configured."""
        return self.mongo_db is not None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "DEV"

    def postgres_config(self, **overrides) -> PostgresConfig:
        """Build a PostgresConfig from the environment."""
        if not self.database_url:
            raise ValueError("DATABASE_URL is required for the relational store")
        values = {
            "url": self.database_url,
            "pool_size": self.database_pool_size,
            "echo": self.database_echo,
            "connect_timeout": self.connect_timeout,
            "statement_timeout": self.statement_timeout,
        }
        values.update(overrides)
        return PostgresConfig(**values)

    def mongo_config(self, **overrides) -> MongoConfig:
        """Build a MongoConfig from the environment."""
        if not self.mongo_db:
            raise ValueError("MONGO_DB is required for the document store")
        values = {
            "host": self.mongo_host,
            "port": self.mongo_port,
            "database": self.mongo_db,
            "user": self.mongo_user,
            "password": self.mongo_password,
            "connect_timeout": self.connect_timeout,
            "statement_timeout": self.statement_timeout,
        }
        values.update(overrides)
        return MongoConfig(**values)


# Global settings instance
settings = Settings()
