"""
Bridges from configuration to kernel objects.

The kernel never imports ``grants_config``; these helpers build kernel
objects from a ``RegistryConfig`` for the CLI and other entry points.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from grants_config.schema import RegistryConfig
from grants_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from grants_kernel.domain.clock import Clock
from grants_kernel.logging_config import configure_logging
from grants_kernel.services.authority import StaticAuthorityGate
from grants_kernel.services.proposal_registry import ProposalRegistry
from grants_kernel.services.transfer_gateway import FundTransferGateway


def init_database(config: RegistryConfig, create: bool = False) -> sessionmaker[Session]:
    """Initialize the engine from ``config.database``; optionally create tables."""
    configure_logging(level=getattr(logging, config.log_level))
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
    )
    if create:
        create_tables()
    return get_session_factory()


def authority_gate_from_config(config: RegistryConfig) -> StaticAuthorityGate:
    return StaticAuthorityGate(config.authorities)


def build_registry(
    config: RegistryConfig,
    gateway: FundTransferGateway,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
) -> ProposalRegistry:
    """A registry wired with the configured authorities and amount limit."""
    return ProposalRegistry(
        session_factory,
        gateway=gateway,
        authority=authority_gate_from_config(config),
        clock=clock,
        max_token_amount=config.max_token_amount,
    )
