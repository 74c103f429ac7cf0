"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The registry's guarantees (no double payout, totals never drift, events are
never retracted) are enforced by ProposalService before it mutates anything.
This module is a second line: SQLAlchemy mapper events that refuse, at flush
time, any write that would break those guarantees no matter which code path
issued it.

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |                                              ^
         v                                              |
    [before_delete event] --> _check_*_delete() --------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | Rule                                   | Why
-------------------|----------------------------------------|--------------------------
RegistryEvent      | ALWAYS immutable, never deleted        | Events are never retracted
Disbursement       | ALWAYS immutable, never deleted        | Money already moved
ProposalMilestone  | ALWAYS immutable, never deleted        | Payment schedule is fixed
Proposal           | Identity, descriptive and financial    | total == sum(milestones)
                   | fields frozen; current_milestone never | and no double payout
                   | decreases; state follows               |
                   | VALID_TRANSITIONS; never deleted       |

===============================================================================
DESIGN DECISIONS
===============================================================================

1. modified_at / modified_by may change on any proposal update: they are
   lifecycle metadata, not business data.

2. State checks use attribute history so that the transition being flushed
   is validated against the value that was loaded, not the value in memory.

3. Inline model imports avoid a circular import (models import db).

===============================================================================
USAGE
===============================================================================

    from grants_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent; ProposalRegistry calls it"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from grants_kernel.exceptions import ImmutabilityViolationError
from grants_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Proposal fields that never change after creation
PROPOSAL_FROZEN_FIELDS = frozenset({
    "id",
    "proposal_id",
    "title",
    "description",
    "reference_url",
    "tags",
    "total_amount",
    "proposer",
    "receiver",
    "asset",
    "created_at",
})


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            **fields,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


# =============================================================================
# Append-only records
# =============================================================================


def _check_registry_event_immutability(mapper, connection, target):
    """Registry events are always immutable."""
    _blocked(
        "RegistryEvent", str(target.seq), "UPDATE",
        "Registry events are immutable and cannot be modified",
    )


def _check_registry_event_delete(mapper, connection, target):
    """Registry events cannot be deleted."""
    _blocked(
        "RegistryEvent", str(target.seq), "DELETE",
        "Registry events cannot be deleted",
    )


def _check_disbursement_immutability(mapper, connection, target):
    """Disbursements are always immutable."""
    _blocked(
        "Disbursement", target.idempotency_key, "UPDATE",
        "Disbursements are immutable and cannot be modified",
    )


def _check_disbursement_delete(mapper, connection, target):
    """Disbursements cannot be deleted."""
    _blocked(
        "Disbursement", target.idempotency_key, "DELETE",
        "Disbursements cannot be deleted",
    )


def _check_milestone_immutability(mapper, connection, target):
    """Milestone amounts are fixed at proposal creation."""
    _blocked(
        "ProposalMilestone", str(target.id), "UPDATE",
        "Milestone amounts are fixed at proposal creation",
    )


def _check_milestone_delete(mapper, connection, target):
    """Milestones cannot be deleted."""
    _blocked(
        "ProposalMilestone", str(target.id), "DELETE",
        "Milestones cannot be deleted",
    )


# =============================================================================
# Proposal
# =============================================================================


def _check_proposal_immutability(mapper, connection, target):
    """
    Enforce frozen fields, monotone progress and legal state transitions.

    Logic:
        1. Any change to a field in PROPOSAL_FROZEN_FIELDS: block.
        2. current_milestone moving backwards (or past the schedule): block.
        3. state changing along an edge not in VALID_TRANSITIONS: block.
    """
    from grants_kernel.models.proposal import ProposalState, VALID_TRANSITIONS

    entity_id = str(target.proposal_id)
    insp = inspect(target)

    for attr in insp.attrs:
        if attr.key in PROPOSAL_FROZEN_FIELDS and attr.history.has_changes():
            _blocked(
                "Proposal", entity_id, "UPDATE",
                f"Cannot modify field '{attr.key}' after creation",
                field=attr.key,
            )

    milestone_history = get_history(target, "current_milestone")
    if milestone_history.deleted and milestone_history.added:
        old_value = milestone_history.deleted[0]
        new_value = milestone_history.added[0]
        if new_value < old_value:
            _blocked(
                "Proposal", entity_id, "UPDATE",
                f"current_milestone cannot decrease ({old_value} -> {new_value})",
                field="current_milestone",
            )
        if new_value > target.milestone_count:
            _blocked(
                "Proposal", entity_id, "UPDATE",
                f"current_milestone {new_value} exceeds milestone count "
                f"{target.milestone_count}",
                field="current_milestone",
            )

    state_history = get_history(target, "state")
    if state_history.deleted and state_history.added:
        old_state = ProposalState(state_history.deleted[0])
        new_state = ProposalState(state_history.added[0])
        if new_state not in VALID_TRANSITIONS[old_state]:
            _blocked(
                "Proposal", entity_id, "UPDATE",
                f"Illegal state transition {old_state.value} -> {new_state.value}",
                field="state",
            )


def _check_proposal_delete(mapper, connection, target):
    """Proposals are never deleted."""
    _blocked(
        "Proposal", str(target.proposal_id), "DELETE",
        "Proposals cannot be deleted",
    )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from grants_kernel.models.disbursement import Disbursement
    from grants_kernel.models.proposal import Proposal, ProposalMilestone
    from grants_kernel.models.registry_event import RegistryEvent

    return (
        (RegistryEvent, "before_update", _check_registry_event_immutability),
        (RegistryEvent, "before_delete", _check_registry_event_delete),
        (Disbursement, "before_update", _check_disbursement_immutability),
        (Disbursement, "before_delete", _check_disbursement_delete),
        (ProposalMilestone, "before_update", _check_milestone_immutability),
        (ProposalMilestone, "before_delete", _check_milestone_delete),
        (Proposal, "before_update", _check_proposal_immutability),
        (Proposal, "before_delete", _check_proposal_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left in place.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
