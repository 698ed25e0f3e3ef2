"""
jobwork_config -- single public entrypoint for kernel configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain settings at runtime.
    No other component reads configuration files or environment variables.

Architecture position:
    Configuration sits above ``jobwork_kernel``.  The kernel MUST NEVER
    import from ``jobwork_config``; ``bridges`` translates settings into
    kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- a value is missing, mistyped or out of range.

Audit relevance:
    Every successful call emits a ``JOBWORK_CONFIG_TRACE`` log entry with
    the config id, version and checksum, so a running process can be tied
    to the exact settings it started with.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from jobwork_config.loader import apply_env_overrides, load_yaml_file, parse_settings
from jobwork_config.schema import KernelSettings

_logger = logging.getLogger("jobwork_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> KernelSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Settings file.  Defaults to jobwork_config/sets/default.yaml.
        environ: Environment used for JOBWORK_* overrides.  Defaults to
            ``os.environ``.
    """
    source = Path(path) if path is not None else _DEFAULT_CONFIG_FILE
    data = apply_env_overrides(
        load_yaml_file(source),
        os.environ if environ is None else environ,
    )
    settings = parse_settings(data)

    _logger.info(
        "JOBWORK_CONFIG_TRACE",
        extra={
            "trace_type": "JOBWORK_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(source),
        },
    )
    return settings


__all__ = ["KernelSettings", "get_active_config"]
