"""
Configuration Loader (``jobwork_config.loader``).

Responsibility
--------------
Loads a YAML settings file, applies ``JOBWORK_*`` environment overrides
for deployment values and parses the result into the frozen dataclasses of
``jobwork_config.schema``.  Callers use ``jobwork_config.get_active_config()``
rather than this module.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` with a descriptive message; no
  silent defaults for required fields (``database.url``).
* ``compute_checksum`` is deterministic, so two processes with the same
  effective settings log the same checksum.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or mistyped values  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from jobwork_config.schema import (
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    TransactionSettings,
)

# Environment variable -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "JOBWORK_DATABASE_URL": ("database", "url", str),
    "JOBWORK_DB_ECHO": ("database", "echo", bool),
    "JOBWORK_DB_POOL_SIZE": ("database", "pool_size", int),
    "JOBWORK_LOCK_TIMEOUT_MS": ("database", "lock_timeout_ms", int),
    "JOBWORK_MAX_ATTEMPTS": ("transactions", "max_attempts", int),
    "JOBWORK_RETRY_BACKOFF_SECONDS": ("transactions", "retry_backoff_seconds", float),
    "JOBWORK_LOG_LEVEL": ("logging", "level", str),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_env_value(name: str, raw: str, kind: type) -> Any:
    if kind is bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{name}: expected a boolean, got {raw!r}")
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name}: expected {kind.__name__}, got {raw!r}") from None


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with any JOBWORK_* variables applied."""
    merged = copy.deepcopy(data)
    for name, (section, key, kind) in ENV_OVERRIDES.items():
        if name in environ and environ[name] != "":
            merged.setdefault(section, {})[key] = _parse_env_value(name, environ[name], kind)
    return merged


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be a mapping")
    return value


def _int(section: dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    """Parse a merged settings dict into a KernelSettings."""
    db = _section(data, "database")
    url = db.get("url")
    if not url or not isinstance(url, str):
        raise ValueError("database.url is required")

    tx = _section(data, "transactions")
    backoff = tx.get("retry_backoff_seconds", 0.05)
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ValueError(f"retry_backoff_seconds must be a non-negative number, got {backoff!r}")

    log = _section(data, "logging")
    level = str(log.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level {level!r}")

    return KernelSettings(
        config_id=str(data.get("config_id", "jobwork")),
        version=int(data.get("version", 1)),
        database=DatabaseSettings(
            url=url,
            echo=bool(db.get("echo", False)),
            pool_size=_int(db, "pool_size", 20, 1),
            max_overflow=_int(db, "max_overflow", 10, 0),
            pool_timeout=_int(db, "pool_timeout", 30, 1),
            pool_recycle=_int(db, "pool_recycle", 1800, -1),
            lock_timeout_ms=_int(db, "lock_timeout_ms", 5000, 1),
        ),
        transactions=TransactionSettings(
            max_attempts=_int(tx, "max_attempts", 3, 1),
            retry_backoff_seconds=float(backoff),
        ),
        logging=LoggingSettings(level=level),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
