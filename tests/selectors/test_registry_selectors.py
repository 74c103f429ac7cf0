"""Read-side selectors over proposals and disbursements."""

import pytest

from grants_kernel.domain.lifecycle import ProposalState
from grants_kernel.exceptions import ProposalNotFoundError
from grants_kernel.selectors import DisbursementSelector, ProposalSelector


class TestProposalSelector:

    def test_find_and_get(self, session, make_proposal):
        info = make_proposal()
        selector = ProposalSelector(session)

        assert selector.find(info.proposal_id) == info
        assert selector.get(info.proposal_id) == info
        assert selector.find(999) is None
        with pytest.raises(ProposalNotFoundError):
            selector.get(999)

    def test_list_by_state(self, session, registry, make_proposal, admin):
        proposed = make_proposal()
        accepted = make_proposal(accept=True)
        rejected = make_proposal()
        registry.reject_proposal(admin, rejected.proposal_id)
        selector = ProposalSelector(session)

        assert [p.proposal_id for p in selector.list_by_state(ProposalState.PROPOSED)] == [proposed.proposal_id]
        assert [p.proposal_id for p in selector.list_by_state("accepted")] == [accepted.proposal_id]
        assert [p.proposal_id for p in selector.list_by_state("rejected")] == [rejected.proposal_id]
        assert selector.list_by_state(ProposalState.COMPLETED) == []

    def test_list_by_unknown_state(self, session):
        with pytest.raises(ValueError):
            ProposalSelector(session).list_by_state("archived")

    def test_list_all_in_id_order(self, session, make_proposal):
        for _ in range(3):
            make_proposal()
        assert [p.proposal_id for p in ProposalSelector(session).list_all()] == [1, 2, 3]

    def test_proposal_count(self, session, make_proposal):
        assert ProposalSelector(session).proposal_count() == 0
        make_proposal()
        assert ProposalSelector(session).proposal_count() == 1

    def test_selector_returns_frozen_snapshots(self, session, make_proposal):
        info = ProposalSelector(session).get(make_proposal().proposal_id)
        with pytest.raises(AttributeError):
            info.state = ProposalState.COMPLETED


class TestDisbursementSelector:

    def test_for_proposal_in_milestone_order(self, session, registry, make_proposal, admin):
        info = make_proposal(milestones=(100, 250, 650), accept=True)
        for _ in range(3):
            registry.complete_milestone(admin, info.proposal_id)

        disbursements = DisbursementSelector(session).for_proposal(info.proposal_id)

        assert [d.milestone_index for d in disbursements] == [0, 1, 2]
        assert [d.amount for d in disbursements] == [100, 250, 650]
        assert [d.idempotency_key for d in disbursements] == [
            f"grants:milestone:{info.proposal_id}:{i}" for i in range(3)
        ]
        assert all(d.actor == admin for d in disbursements)

    def test_total_disbursed_matches_paid_amount(self, session, registry, make_proposal, admin, gateway):
        gateway.fund("USDC", 2**256)
        info = make_proposal(milestones=(2**255, 2**255 - 1), accept=True)
        registry.complete_milestone(admin, info.proposal_id)
        registry.complete_milestone(admin, info.proposal_id)

        assert DisbursementSelector(session).total_disbursed(info.proposal_id) == 2**256 - 1

    def test_withdrawals_filter_by_asset(self, session, registry, admin, gateway):
        gateway.fund("DAI", 100)
        registry.withdraw_asset(admin, "0xtreasury", 10, "USDC")
        registry.withdraw_asset(admin, "0xtreasury", 20, "DAI")

        selector = DisbursementSelector(session)
        assert [w.amount for w in selector.withdrawals("DAI")] == [20]
        assert sorted(w.amount for w in selector.withdrawals()) == [10, 20]
