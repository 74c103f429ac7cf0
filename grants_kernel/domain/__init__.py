"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time is reached only through an injected Clock.
"""

from grants_kernel.domain.addresses import is_zero_address, normalize_address
from grants_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from grants_kernel.domain.dtos import DisbursementInfo, ProposalInfo, RegistryEventInfo
from grants_kernel.domain.lifecycle import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ProposalState,
    can_transition,
)
from grants_kernel.domain.milestones import (
    MAX_TOKEN_AMOUNT,
    checked_total,
    paid_amount,
    remaining_amount,
    validate_milestone_amounts,
)

__all__ = [
    # Lifecycle
    "ProposalState",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "can_transition",
    # Milestone accounting
    "MAX_TOKEN_AMOUNT",
    "checked_total",
    "paid_amount",
    "remaining_amount",
    "validate_milestone_amounts",
    # Addresses
    "is_zero_address",
    "normalize_address",
    # DTOs
    "ProposalInfo",
    "DisbursementInfo",
    "RegistryEventInfo",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
]
