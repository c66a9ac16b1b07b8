"""
Configuration Loader (``ttl_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``WorkflowConfig``.  Build/test tooling: runtime callers go through
``ttl_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ttl_config.schema import WorkflowConfig

_KNOWN_KEYS = frozenset({
    "config_id",
    "version",
    "currency",
    "ceo_approval_threshold",
    "budget_conflict_retries",
    "notifications_enabled",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the parsed configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_decimal(raw: Any, key: str) -> Decimal:
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"{key} must be numeric, got {raw!r}") from exc


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """Turn a parsed YAML mapping into a ``WorkflowConfig``."""
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {"checksum": compute_checksum(data)}
    if "config_id" in data:
        kwargs["config_id"] = str(data["config_id"])
    if "version" in data:
        kwargs["version"] = int(data["version"])
    if "currency" in data:
        kwargs["currency"] = str(data["currency"])
    if "ceo_approval_threshold" in data:
        kwargs["ceo_approval_threshold"] = _parse_decimal(
            data["ceo_approval_threshold"], "ceo_approval_threshold",
        )
    if "budget_conflict_retries" in data:
        kwargs["budget_conflict_retries"] = int(data["budget_conflict_retries"])
    if "notifications_enabled" in data:
        kwargs["notifications_enabled"] = bool(data["notifications_enabled"])
    return WorkflowConfig(**kwargs)


def load_workflow_config(path: Path) -> WorkflowConfig:
    return parse_workflow_config(load_yaml_file(path))
