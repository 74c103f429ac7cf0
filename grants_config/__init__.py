"""
grants_config -- single public entrypoint for registry configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the YAML file or
    the environment directly.

Architecture position:
    Configuration -- sits above ``grants_kernel``.  The kernel MUST NEVER
    import from ``grants_config``; ``grants_config.bridges`` translates a
    ``RegistryConfig`` into kernel objects.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation: a config with no database URL, no authority, or a
      non-positive ``max_token_amount`` is never returned.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``GRANTS_CONFIG_TRACE`` log entry with the source path and checksum,
    tying every registry run to the exact configuration that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from grants_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_registry_config,
    validate_config,
)
from grants_config.schema import ConfigValidationError, DatabaseConfig, RegistryConfig

__all__ = [
    "get_active_config",
    "RegistryConfig",
    "DatabaseConfig",
    "ConfigValidationError",
    "DATABASE_URL_ENV",
]

_logger = logging.getLogger("grants_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "registry.yaml"

DATABASE_URL_ENV = "GRANTS_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> RegistryConfig:
    """The ONLY public configuration entrypoint.

    Loads ``config_path`` (default: ``grants_config/registry.yaml``),
    applies the ``GRANTS_DATABASE_URL`` override, validates, and returns a
    frozen ``RegistryConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ConfigValidationError: If the configuration is invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        database = dict(data.get("database") or {})
        database["url"] = override
        data = {**data, "database": database}

    checksum = compute_checksum(data)
    try:
        config = parse_registry_config(data, checksum=checksum)
    except ConfigValidationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError([str(exc)]) from exc

    errors = validate_config(config)
    if errors:
        raise ConfigValidationError(errors)

    _logger.info(
        "GRANTS_CONFIG_TRACE",
        extra={
            "trace_type": "GRANTS_CONFIG_TRACE",
            "config_path": str(path),
            "config_name": config.name,
            "config_version": config.version,
            "checksum": checksum,
            "authority_count": len(config.authorities),
            "database_override": bool(override),
        },
    )
    return config
