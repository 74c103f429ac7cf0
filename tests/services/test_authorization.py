"""
Authority-only operations.

Unauthorized callers always fail with UnauthorizedError: zero state change,
zero transfers, zero events.
"""

import pytest

from grants_kernel.domain.lifecycle import ProposalState
from grants_kernel.exceptions import InvalidInputError, UnauthorizedError
from grants_kernel.services.authority import (
    AuthorityGate,
    OwnableAuthorityGate,
    StaticAuthorityGate,
)
from grants_kernel.services.proposal_registry import ProposalRegistry

INTRUDER = "0xmallory"


class TestUnauthorizedCallers:

    @pytest.mark.parametrize(
        "operation",
        ["accept_proposal", "reject_proposal", "complete_milestone", "emergency_payout"],
    )
    def test_proposal_operations_require_authority(self, registry, make_proposal, gateway, operation):
        info = make_proposal(accept=operation != "accept_proposal")
        events_before = registry.list_events()

        with pytest.raises(UnauthorizedError) as exc_info:
            getattr(registry, operation)(INTRUDER, info.proposal_id)

        assert exc_info.value.caller == INTRUDER
        assert exc_info.value.code == "UNAUTHORIZED"
        assert registry.get_proposal(info.proposal_id) == info
        assert registry.list_events() == events_before
        assert gateway.transfers == ()

    def test_withdraw_requires_authority(self, registry, gateway):
        with pytest.raises(UnauthorizedError):
            registry.withdraw_asset(INTRUDER, INTRUDER, 10, "USDC")

        assert gateway.balance_of("USDC") == 1_000_000
        assert registry.list_events() == []

    def test_authority_checked_before_existence(self, registry):
        with pytest.raises(UnauthorizedError):
            registry.accept_proposal(INTRUDER, 404)

    def test_authority_checked_before_id_type(self, registry):
        with pytest.raises(UnauthorizedError):
            registry.complete_milestone(INTRUDER, [1])

    def test_proposer_is_not_an_authority(self, registry, make_proposal):
        info = make_proposal()
        with pytest.raises(UnauthorizedError):
            registry.accept_proposal(info.proposer, info.proposal_id)

    def test_rejection_is_logged(self, registry, make_proposal, captured_logs):
        info = make_proposal()
        with pytest.raises(UnauthorizedError):
            registry.accept_proposal(INTRUDER, info.proposal_id)

        rejected = [r for r in captured_logs() if r["message"] == "unauthorized_call_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["caller"] == INTRUDER
        assert rejected[0]["operation"] == "accept proposal"


class TestStaticAuthorityGate:

    def test_satisfies_protocol(self):
        assert isinstance(StaticAuthorityGate(["0xa"]), AuthorityGate)

    def test_membership_ignores_surrounding_whitespace(self):
        gate = StaticAuthorityGate([" 0xa "])
        assert gate.is_authority("0xa")
        assert gate.is_authority("  0xa")
        assert not gate.is_authority("0xb")

    def test_zero_addresses_are_dropped(self):
        gate = StaticAuthorityGate(["0x0000", "", "0xa"])
        assert gate.authorities == frozenset({"0xa"})
        assert not gate.is_authority("0x0000")

    def test_multiple_authorities(self, session_factory, gateway, deterministic_clock):
        registry = ProposalRegistry(
            session_factory,
            gateway,
            StaticAuthorityGate(["0xcommittee", "0xtreasurer"]),
            deterministic_clock,
        )
        pid = registry.create_proposal("0xalice", "t", "d", "u", [10], "0xr", "USDC")

        registry.accept_proposal("0xcommittee", pid)
        result = registry.complete_milestone("0xtreasurer", pid)

        assert result.state is ProposalState.COMPLETED


class TestOwnableAuthorityGate:

    def test_owner_is_the_only_authority(self):
        gate = OwnableAuthorityGate("0xowner")
        assert isinstance(gate, AuthorityGate)
        assert gate.is_authority("0xowner")
        assert not gate.is_authority("0xother")

    def test_zero_owner_rejected(self):
        with pytest.raises(InvalidInputError):
            OwnableAuthorityGate("0x000")

    def test_transfer_ownership(self):
        gate = OwnableAuthorityGate("0xowner")
        gate.transfer_ownership("0xowner", "0xsuccessor")

        assert gate.owner == "0xsuccessor"
        assert gate.is_authority("0xsuccessor")
        assert not gate.is_authority("0xowner")

    def test_only_owner_may_transfer(self):
        gate = OwnableAuthorityGate("0xowner")
        with pytest.raises(UnauthorizedError):
            gate.transfer_ownership("0xother", "0xother")
        assert gate.owner == "0xowner"

    def test_transfer_to_zero_address_rejected(self):
        gate = OwnableAuthorityGate("0xowner")
        with pytest.raises(InvalidInputError):
            gate.transfer_ownership("0xowner", "")

    def test_renounce_leaves_no_authority(self, session_factory, gateway, deterministic_clock):
        gate = OwnableAuthorityGate("0xowner")
        registry = ProposalRegistry(session_factory, gateway, gate, deterministic_clock)
        pid = registry.create_proposal("0xalice", "t", "d", "u", [10], "0xr", "USDC")

        gate.renounce_ownership("0xowner")

        assert gate.owner is None
        with pytest.raises(UnauthorizedError):
            registry.accept_proposal("0xowner", pid)

    def test_only_owner_may_renounce(self):
        gate = OwnableAuthorityGate("0xowner")
        with pytest.raises(UnauthorizedError):
            gate.renounce_ownership("0xother")
        assert gate.owner == "0xowner"
