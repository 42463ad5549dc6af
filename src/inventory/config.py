"""Runtime configuration for the inventory service.

Values come from environment variables, optionally loaded from a ``.env``
file via python-dotenv. ``InventoryConfig.from_env()`` reads them at call
time so tests can patch the environment before building a config.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

STORE_MEMORY = "memory"
STORE_POSTGRES = "postgres"
SUPPORTED_STORES = (STORE_MEMORY, STORE_POSTGRES)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: str, minimum: int = 0) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass
class InventoryConfig:
    """Configuration for the inventory service."""

    # Storage backend
    store: str = STORE_MEMORY
    database_url: Optional[str] = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5

    # Seed the sample device/phone into an empty store on startup
    seed_sample_data: bool = True

    # Logging
    log_level: str = "INFO"

    # HTTP adapter
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )
    port: int = 8000

    def __post_init__(self):
        self.store = self.store.strip().lower()
        if self.store not in SUPPORTED_STORES:
            raise ConfigurationError(
                f"Unsupported store {self.store!r}; expected one of {SUPPORTED_STORES}"
            )
        if self.store == STORE_POSTGRES and not self.database_url:
            raise ConfigurationError(
                "DATABASE_URL is required when INVENTORY_STORE=postgres",
                missing_keys=["DATABASE_URL"],
            )
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ConfigurationError(
                "DB_POOL_MIN_SIZE must not exceed DB_POOL_MAX_SIZE"
            )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_dotenv_file: bool = True,
    ) -> "InventoryConfig":
        """Build a config from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            load_dotenv_file: Load a ``.env`` file first (ignored when
                ``environ`` is given)

        Raises:
            ConfigurationError: If a value is missing or malformed
        """
        if environ is None:
            if load_dotenv_file:
                load_dotenv()
            environ = os.environ

        cors = environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")

        return cls(
            store=environ.get("INVENTORY_STORE", STORE_MEMORY),
            database_url=environ.get("DATABASE_URL") or None,
            db_pool_min_size=_parse_int(
                "DB_POOL_MIN_SIZE", environ.get("DB_POOL_MIN_SIZE", "1"), minimum=1
            ),
            db_pool_max_size=_parse_int(
                "DB_POOL_MAX_SIZE", environ.get("DB_POOL_MAX_SIZE", "5"), minimum=1
            ),
            seed_sample_data=_parse_bool(
                "SEED_SAMPLE_DATA", environ.get("SEED_SAMPLE_DATA", "true")
            ),
            log_level=environ.get("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
            port=_parse_int("PORT", environ.get("PORT", "8000"), minimum=1),
        )
