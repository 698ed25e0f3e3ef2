"""
Config -> Kernel bridges.

Turn KernelSettings into a ready-to-use kernel: engine, session factory,
immutability listeners, logging and the StockLedger facade.  These live in
jobwork_config because the kernel must NEVER import jobwork_config.

Usage:
    from jobwork_config import get_active_config
    from jobwork_config.bridges import build_stock_ledger

    ledger = build_stock_ledger(get_active_config(), create_schema=True)
"""

from __future__ import annotations

import logging

from jobwork_config.schema import KernelSettings
from jobwork_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from jobwork_kernel.db.immutability import register_immutability_listeners
from jobwork_kernel.domain.clock import Clock
from jobwork_kernel.logging_config import configure_logging
from jobwork_kernel.services.stock_ledger import StockLedger


def init_database(settings: KernelSettings, create_schema: bool = False) -> None:
    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        lock_timeout_ms=db.lock_timeout_ms,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()


def build_stock_ledger(
    settings: KernelSettings,
    clock: Clock | None = None,
    create_schema: bool = False,
    configure_logs: bool = True,
) -> StockLedger:
    """Initialise the database layer and return a configured StockLedger."""
    if configure_logs:
        configure_logging(level=logging.getLevelName(settings.logging.level))
    init_database(settings, create_schema=create_schema)
    return StockLedger(
        get_session_factory(),
        clock=clock,
        max_attempts=settings.transactions.max_attempts,
        retry_backoff_seconds=settings.transactions.retry_backoff_seconds,
    )
