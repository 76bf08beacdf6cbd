"""
Ledger Configuration (``inventory_kernel.config``).

Responsibility
--------------
Holds the runtime settings of the inventory ledger: database connection,
pool sizing, default alert thresholds, conflict retry budget and the age
after which an open reservation is reported as stale.

Architecture position
---------------------
**Kernel > Config** -- infrastructure.  Consumed by ``db.engine.Database``,
``services.ledger_store`` (threshold defaults), ``services.reservation_engine``
(retry budget) and ``inventory_services.reconciliation_service``.

Failure modes
-------------
* Invalid values  -> ``ValueError`` from ``__post_init__``.
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

import yaml

from inventory_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_DATABASE_URL = "sqlite:///inventory_ledger.db"

_ENV_PREFIX = "INVENTORY_"


@dataclass
class LedgerConfig:
    """
    Configuration for the inventory ledger.

    Defaults are suitable for a local SQLite file; production deployments
    override ``database_url`` with a PostgreSQL URL:

        config = LedgerConfig.from_yaml("config/ledger.yaml")
        db = Database.from_config(config)
    """

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600
    sqlite_busy_timeout: float = 30.0

    # Alert thresholds for newly provisioned items
    default_low_stock_threshold: int = 10
    default_out_of_stock_threshold: int = 0

    # Engine
    max_conflict_retries: int = 1

    # Reconciliation
    stale_reservation_hours: int = 72

    log_level: str = "INFO"

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url is required")
        if self.pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if self.max_overflow < 0:
            raise ValueError("max_overflow cannot be negative")
        if self.sqlite_busy_timeout < 0:
            raise ValueError("sqlite_busy_timeout cannot be negative")
        if self.default_low_stock_threshold < 0:
            raise ValueError("default_low_stock_threshold cannot be negative")
        if self.default_out_of_stock_threshold < 0:
            raise ValueError("default_out_of_stock_threshold cannot be negative")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries cannot be negative")
        if self.stale_reservation_hours < 1:
            raise ValueError("stale_reservation_hours must be at least 1")

        self.log_level = self.log_level.upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log_level '{self.log_level}'")

        logger.debug(
            "ledger_config_initialized",
            extra={
                "backend": self.database_url.split(":", 1)[0],
                "default_low_stock_threshold": self.default_low_stock_threshold,
                "max_conflict_retries": self.max_conflict_retries,
            },
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Create config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown ledger config keys: {sorted(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load config from a YAML file; an optional ``ledger:`` section is unwrapped."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Expected a mapping in {path}, got {type(raw).__name__}")
        data = raw.get("ledger", raw)
        logger.info("ledger_config_loaded", extra={"path": str(path)})
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """
        Build config from ``INVENTORY_*`` environment variables.

        ``INVENTORY_DATABASE_URL`` maps to ``database_url`` and so on; values
        are coerced to the field's declared type.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(f"{_ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            data[f.name] = _coerce(raw, f.type)
        return cls(**data)


def _coerce(raw: str, type_name: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    name = type_name if isinstance(type_name, str) else type_name.__name__
    if name == "bool":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if name == "int":
        return int(raw)
    if name == "float":
        return float(raw)
    return raw
