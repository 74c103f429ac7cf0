"""
Registry configuration schema.

Frozen dataclasses parsed from ``registry.yaml`` by the loader.  Nothing
else in the project reads the YAML; everything else receives a
``RegistryConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from grants_kernel.domain.milestones import MAX_TOKEN_AMOUNT


class ConfigValidationError(ValueError):
    """Configuration failed validation.  ``errors`` lists every problem found."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20


@dataclass(frozen=True)
class RegistryConfig:
    """
    Runtime configuration for a registry deployment.

    ``checksum`` is the SHA-256 of the parsed source document (after the
    environment override), so two processes with equal checksums run with
    identical settings.
    """

    database: DatabaseConfig
    authorities: tuple[str, ...]
    max_token_amount: int = MAX_TOKEN_AMOUNT
    log_level: str = "INFO"
    name: str = "grants-registry"
    version: int = 1
    checksum: str = field(default="", compare=False)
