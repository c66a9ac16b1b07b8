"""
ttl_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  YAML loading is internal tooling.

Architecture position:
    Configuration.  Sits beside ``ttl_kernel``; the kernel never imports
    from here -- the frozen ``WorkflowConfig`` is injected into the engine
    and services by the caller.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ttl_config.loader import load_workflow_config
from ttl_config.schema import WorkflowConfig

__all__ = ["WorkflowConfig", "get_active_config"]

_logger = logging.getLogger("ttl_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> WorkflowConfig:
    """The ONLY public configuration entrypoint.

    Emits a ``TTL_CONFIG_TRACE`` log entry on every successful call so that
    each workflow decision can be tied to the configuration that governed
    it.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    config = load_workflow_config(path)

    _logger.info(
        "TTL_CONFIG_TRACE",
        extra={
            "trace_type": "TTL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "ceo_approval_threshold": str(config.ceo_approval_threshold),
            "currency": config.currency,
        },
    )
    return config
