"""
Proposal lifecycle through the registry facade.

proposed -> accepted -> (milestones paid one by one) -> completed
proposed / accepted -> rejected
"""

import pytest

from grants_kernel.domain.lifecycle import ProposalState
from grants_kernel.exceptions import (
    InvalidStateError,
    MilestonesExhaustedError,
    ProposalNotFoundError,
)
from grants_kernel.models.registry_event import RegistryEventType


class TestCreateProposal:

    def test_create_stores_proposal_in_proposed_state(self, make_proposal, deterministic_clock):
        info = make_proposal(milestones=(100, 250, 650))

        assert info.proposal_id == 1
        assert info.state is ProposalState.PROPOSED
        assert info.milestone_amounts == (100, 250, 650)
        assert info.total_amount == 1000
        assert info.current_milestone == 0
        assert info.proposer == "0xalice"
        assert info.receiver == "0xreceiver"
        assert info.asset == "USDC"
        assert info.tags == ("docs",)
        assert info.created_at == deterministic_clock.now_utc()
        assert info.modified_at == info.created_at

    def test_proposal_ids_strictly_increase(self, make_proposal):
        ids = [make_proposal().proposal_id for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_proposal_count_tracks_allocated_ids(self, registry, make_proposal):
        assert registry.proposal_count() == 0
        make_proposal()
        make_proposal()
        assert registry.proposal_count() == 2

    def test_create_emits_new_proposal_event(self, registry, make_proposal):
        info = make_proposal()

        events = registry.list_events()
        assert [e.event_type for e in events] == [RegistryEventType.NEW_PROPOSAL.value]
        assert events[0].proposal_id == info.proposal_id
        assert events[0].payload["total_amount"] == "1000"
        assert events[0].actor == "0xalice"

    def test_anyone_may_create(self, registry):
        proposal_id = registry.create_proposal(
            "0xnobody", "t", "d", "u", [5], "0xreceiver", "USDC",
        )
        assert registry.get_proposal(proposal_id).proposer == "0xnobody"

    def test_create_logs_proposal_created(self, make_proposal, captured_logs):
        make_proposal()
        logs = captured_logs()
        created = [r for r in logs if r["message"] == "proposal_created"]
        assert len(created) == 1
        assert created[0]["total_amount"] == "1000"
        assert created[0]["actor"] == "0xalice"


class TestAcceptProposal:

    def test_accept_moves_to_accepted(self, registry, make_proposal, admin, deterministic_clock):
        info = make_proposal()
        deterministic_clock.advance(60)

        accepted = registry.accept_proposal(admin, info.proposal_id)

        assert accepted.state is ProposalState.ACCEPTED
        assert accepted.modified_at > accepted.created_at
        assert accepted.modified_by == admin

    def test_accept_emits_event(self, registry, make_proposal):
        make_proposal(accept=True)
        assert registry.list_events()[-1].event_type == RegistryEventType.ACCEPT_PROPOSAL.value

    def test_accept_twice_fails(self, registry, make_proposal, admin):
        info = make_proposal(accept=True)
        with pytest.raises(InvalidStateError) as exc_info:
            registry.accept_proposal(admin, info.proposal_id)
        assert exc_info.value.current_state == "accepted"

    def test_accept_unknown_proposal(self, registry, admin):
        with pytest.raises(ProposalNotFoundError) as exc_info:
            registry.accept_proposal(admin, 42)
        assert exc_info.value.proposal_id == 42


class TestCompleteMilestone:

    def test_worked_example_pays_each_milestone_in_order(self, registry, make_proposal, admin, gateway):
        """[100, 250, 650]: three completions pay 100, 250, 650 and complete."""
        info = make_proposal(milestones=(100, 250, 650), accept=True)
        pid = info.proposal_id

        first = registry.complete_milestone(admin, pid)
        assert first.current_milestone == 1
        assert first.state is ProposalState.ACCEPTED

        second = registry.complete_milestone(admin, pid)
        assert second.current_milestone == 2
        assert second.state is ProposalState.ACCEPTED

        third = registry.complete_milestone(admin, pid)
        assert third.current_milestone == 3
        assert third.state is ProposalState.COMPLETED

        assert [t.amount for t in gateway.transfers] == [100, 250, 650]
        assert all(t.recipient == "0xreceiver" and t.asset == "USDC" for t in gateway.transfers)
        assert gateway.total_transferred("USDC", "0xreceiver") == 1000

    def test_single_milestone_completes_immediately(self, registry, make_proposal, admin):
        info = make_proposal(milestones=(500,), accept=True)

        result = registry.complete_milestone(admin, info.proposal_id)

        assert result.state is ProposalState.COMPLETED
        assert result.current_milestone == 1
        assert result.paid_amount == 500
        assert result.remaining_amount == 0

    def test_completion_happens_on_last_milestone_not_before(self, registry, make_proposal, admin):
        info = make_proposal(milestones=(1, 2), accept=True)

        after_first = registry.complete_milestone(admin, info.proposal_id)

        assert after_first.state is ProposalState.ACCEPTED
        assert after_first.remaining_amount == 2

    def test_event_sequence_for_full_payout(self, registry, make_proposal, admin):
        info = make_proposal(milestones=(10, 20), accept=True)
        registry.complete_milestone(admin, info.proposal_id)
        registry.complete_milestone(admin, info.proposal_id)

        assert [e.event_type for e in registry.list_events()] == [
            "NewProposal",
            "AcceptProposal",
            "MilestoneCompleted",
            "MilestoneCompleted",
            "CompleteProposal",
        ]
        milestone_events = [
            e for e in registry.list_events() if e.event_type == "MilestoneCompleted"
        ]
        assert [e.payload["current_milestone"] for e in milestone_events] == [1, 2]
        assert [e.payload["amount"] for e in milestone_events] == ["10", "20"]

    def test_complete_on_proposed_fails_without_transfer(self, registry, make_proposal, admin, gateway):
        info = make_proposal()

        with pytest.raises(InvalidStateError):
            registry.complete_milestone(admin, info.proposal_id)

        assert gateway.transfers == ()

    def test_complete_on_completed_fails(self, registry, make_proposal, admin, gateway):
        info = make_proposal(milestones=(5,), accept=True)
        registry.complete_milestone(admin, info.proposal_id)

        with pytest.raises(InvalidStateError) as exc_info:
            registry.complete_milestone(admin, info.proposal_id)

        assert exc_info.value.current_state == "completed"
        assert len(gateway.transfers) == 1

    def test_exhausted_milestones_error_is_a_proposal_error(self):
        error = MilestonesExhaustedError(3, 2)
        assert error.code == "MILESTONES_EXHAUSTED"
        assert "2 of 2" in str(error)


class TestRejectProposal:

    def test_reject_proposed(self, registry, make_proposal, admin):
        info = make_proposal()

        rejected = registry.reject_proposal(admin, info.proposal_id, "out of scope")

        assert rejected.state is ProposalState.REJECTED
        assert rejected.rejection_reason == "out of scope"
        assert rejected.is_terminal
        last = registry.list_events()[-1]
        assert last.event_type == "RejectProposal"
        assert last.payload["reason"] == "out of scope"

    def test_reject_accepted_makes_no_transfer(self, registry, make_proposal, admin, gateway):
        info = make_proposal(accept=True)

        registry.reject_proposal(admin, info.proposal_id)

        assert gateway.transfers == ()
        with pytest.raises(InvalidStateError):
            registry.complete_milestone(admin, info.proposal_id)

    def test_reject_after_partial_payment_keeps_paid_milestones(self, registry, make_proposal, admin, gateway):
        info = make_proposal(milestones=(100, 250, 650), accept=True)
        registry.complete_milestone(admin, info.proposal_id)

        rejected = registry.reject_proposal(admin, info.proposal_id, "stalled")

        assert rejected.current_milestone == 1
        assert rejected.paid_amount == 100
        assert gateway.total_transferred("USDC") == 100

    def test_reject_completed_fails(self, registry, make_proposal, admin):
        info = make_proposal(milestones=(5,), accept=True)
        registry.complete_milestone(admin, info.proposal_id)

        with pytest.raises(InvalidStateError):
            registry.reject_proposal(admin, info.proposal_id)

    def test_reject_rejected_fails(self, registry, make_proposal, admin):
        info = make_proposal()
        registry.reject_proposal(admin, info.proposal_id)

        with pytest.raises(InvalidStateError):
            registry.reject_proposal(admin, info.proposal_id)

    def test_accept_after_reject_fails(self, registry, make_proposal, admin):
        info = make_proposal()
        registry.reject_proposal(admin, info.proposal_id)

        with pytest.raises(InvalidStateError):
            registry.accept_proposal(admin, info.proposal_id)


class TestQueries:

    def test_get_unknown_proposal(self, registry):
        with pytest.raises(ProposalNotFoundError):
            registry.get_proposal(99)

    def test_to_dict_is_json_friendly(self, make_proposal):
        data = make_proposal(milestones=(2**200, 1)).to_dict()

        assert data["milestone_amounts"] == [str(2**200), "1"]
        assert data["total_amount"] == str(2**200 + 1)
        assert data["state"] == "proposed"
        assert data["remaining_amount"] == data["total_amount"]

    def test_list_events_after_seq(self, registry, make_proposal):
        make_proposal()
        make_proposal()
        make_proposal()

        later = registry.list_events(after_seq=1)
        assert [e.seq for e in later] == [2, 3]
        assert [e.seq for e in registry.list_events(after_seq=0, limit=2)] == [1, 2]
