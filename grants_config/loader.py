"""
Configuration Loader (``grants_config.loader``).

Responsibility
--------------
Loads the registry YAML file and parses it into the frozen dataclasses of
``grants_config.schema``.  The single public entry point for runtime
config is ``grants_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong shapes or types  -> ``ConfigValidationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from grants_config.schema import ConfigValidationError, DatabaseConfig, RegistryConfig
from grants_kernel.domain.addresses import is_zero_address
from grants_kernel.domain.milestones import MAX_TOKEN_AMOUNT, parse_max_amount

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigValidationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigValidationError([f"{path}: top level must be a mapping"])
    return data


def parse_database(data: Any) -> DatabaseConfig:
    """Parse the ``database`` section."""
    if not isinstance(data, dict):
        raise ConfigValidationError(["database: must be a mapping"])
    return DatabaseConfig(
        url=str(data.get("url") or ""),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
    )


def parse_registry_config(data: dict[str, Any], checksum: str = "") -> RegistryConfig:
    """
    Parse a ``RegistryConfig`` from a loaded document.

    Raises:
        ConfigValidationError: if a section has the wrong shape or a value
            cannot be converted.
    """
    meta = data.get("registry") or {}
    authorities = data.get("authorities") or []
    if isinstance(authorities, str) or not isinstance(authorities, list):
        raise ConfigValidationError(["authorities: must be a list of addresses"])

    try:
        max_amount = parse_max_amount(data.get("max_token_amount", MAX_TOKEN_AMOUNT))
    except ValueError as exc:
        raise ConfigValidationError([f"max_token_amount: {exc}"]) from exc

    return RegistryConfig(
        database=parse_database(data.get("database") or {}),
        authorities=tuple(str(a) for a in authorities),
        max_token_amount=max_amount,
        log_level=str(data.get("log_level", "INFO")).upper(),
        name=str(meta.get("name", "grants-registry")),
        version=int(meta.get("version", 1)),
        checksum=checksum,
    )


def validate_config(config: RegistryConfig) -> list[str]:
    """Return every validation problem found; an empty list means valid."""
    errors: list[str] = []
    if not config.database.url.strip():
        errors.append("database.url: must not be empty")
    if config.database.pool_size <= 0:
        errors.append("database.pool_size: must be positive")
    if not config.authorities:
        errors.append("authorities: at least one authority is required")
    if any(is_zero_address(a) for a in config.authorities):
        errors.append("authorities: addresses must not be empty or the zero address")
    if config.max_token_amount <= 0:
        errors.append("max_token_amount: must be positive")
    if config.log_level not in LOG_LEVELS:
        errors.append(f"log_level: must be one of {', '.join(LOG_LEVELS)}")
    return errors


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
