"""
Kernel settings schema.

Frozen dataclasses produced by the loader.  They are the only form in
which configuration reaches the rest of the system.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    lock_timeout_ms: int = 5000


@dataclass(frozen=True)
class TransactionSettings:
    """Retry bounds for the unit of work."""

    max_attempts: int = 3
    retry_backoff_seconds: float = 0.05


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    config_id: str
    version: int
    database: DatabaseSettings
    transactions: TransactionSettings
    logging: LoggingSettings
    checksum: str
