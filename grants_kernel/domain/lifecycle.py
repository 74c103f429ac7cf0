"""
Proposal lifecycle -- states and the legal transitions between them.

    proposed --> accepted --> completed
        |           |
        +-----------+--> rejected

completed and rejected are terminal.  complete_milestone keeps an accepted
proposal in accepted until the last milestone is paid.

The same table is checked twice: by ProposalService before it mutates a
proposal, and by the ORM listeners in db/immutability.py at flush time.
"""

from enum import Enum


class ProposalState(str, Enum):
    """Lifecycle state of a proposal."""

    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"


VALID_TRANSITIONS: dict[ProposalState, frozenset[ProposalState]] = {
    ProposalState.PROPOSED: frozenset({ProposalState.ACCEPTED, ProposalState.REJECTED}),
    ProposalState.ACCEPTED: frozenset({ProposalState.COMPLETED, ProposalState.REJECTED}),
    ProposalState.COMPLETED: frozenset(),
    ProposalState.REJECTED: frozenset(),
}

TERMINAL_STATES = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


def can_transition(current: ProposalState, target: ProposalState) -> bool:
    """True if ``current -> target`` is a legal lifecycle edge."""
    return target in VALID_TRANSITIONS[current]
