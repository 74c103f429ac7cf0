"""
ProposalSelector -- read-only queries over proposals.

Reads are unsynchronized: a caller may observe a proposal between two
operations of another caller, but never a half-applied operation, because
every operation commits atomically.
"""

from sqlalchemy import select

from grants_kernel.domain.dtos import ProposalInfo
from grants_kernel.domain.lifecycle import ProposalState
from grants_kernel.exceptions import ProposalNotFoundError
from grants_kernel.models.proposal import Proposal
from grants_kernel.selectors.base import BaseSelector
from grants_kernel.models.sequence_counter import PROPOSAL_SEQUENCE, SequenceCounter


class ProposalSelector(BaseSelector[Proposal]):
    """Query proposals by id and by state."""

    def find(self, proposal_id: int) -> ProposalInfo | None:
        proposal = self.session.execute(
            select(Proposal).where(Proposal.proposal_id == proposal_id)
        ).scalar_one_or_none()
        return ProposalInfo.from_model(proposal) if proposal else None

    def get(self, proposal_id: int) -> ProposalInfo:
        """
        Raises:
            ProposalNotFoundError: Unknown proposal id.
        """
        info = self.find(proposal_id)
        if info is None:
            raise ProposalNotFoundError(proposal_id)
        return info

    def proposal_count(self) -> int:
        """Number of proposal ids ever allocated (0 before the first)."""
        value = self.session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == PROPOSAL_SEQUENCE)
        ).scalar_one_or_none()
        return value or 0

    def list_by_state(self, state: ProposalState | str) -> list[ProposalInfo]:
        state = ProposalState(state)
        proposals = self.session.execute(
            select(Proposal)
            .where(Proposal.state == state.value)
            .order_by(Proposal.proposal_id)
        ).scalars().all()
        return [ProposalInfo.from_model(p) for p in proposals]

    def list_all(self) -> list[ProposalInfo]:
        proposals = self.session.execute(
            select(Proposal).order_by(Proposal.proposal_id)
        ).scalars().all()
        return [ProposalInfo.from_model(p) for p in proposals]
