"""DisbursementSelector -- read-only queries over the disbursement ledger."""

from sqlalchemy import select

from grants_kernel.domain.dtos import DisbursementInfo
from grants_kernel.models.disbursement import Disbursement, DisbursementKind
from grants_kernel.selectors.base import BaseSelector


class DisbursementSelector(BaseSelector[Disbursement]):

    def for_proposal(self, proposal_id: int) -> list[DisbursementInfo]:
        rows = self.session.execute(
            select(Disbursement)
            .where(Disbursement.proposal_id == proposal_id)
            .order_by(Disbursement.milestone_index)
        ).scalars().all()
        return [DisbursementInfo.from_model(d) for d in rows]

    def total_disbursed(self, proposal_id: int) -> int:
        # Amounts are stored as strings; sum in Python to keep full precision
        return sum(d.amount for d in self.for_proposal(proposal_id))

    def withdrawals(self, asset: str | None = None) -> list[DisbursementInfo]:
        query = select(Disbursement).where(
            Disbursement.kind == DisbursementKind.WITHDRAWAL.value
        )
        if asset is not None:
            query = query.where(Disbursement.asset == asset)
        rows = self.session.execute(query.order_by(Disbursement.disbursed_at)).scalars().all()
        return [DisbursementInfo.from_model(d) for d in rows]
