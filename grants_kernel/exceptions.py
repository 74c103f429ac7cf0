"""
Typed Exception Hierarchy for the Grants Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the registry (an API layer, the CLI, an indexer) must react to
failures precisely.  Parsing messages is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        registry.complete_milestone(caller, proposal_id)
    except Exception as e:
        if "not accepted" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        registry.complete_milestone(caller, proposal_id)
    except InvalidStateError as e:
        api_response(code=e.code, state=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GrantsKernelError (base)
    |
    +-- InvalidInputError
    |   +-- AmountOverflowError
    |
    +-- ProposalError
    |   +-- ProposalNotFoundError
    |   +-- InvalidStateError
    |   +-- MilestonesExhaustedError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |
    +-- FundsError
    |   +-- TransferFailedError
    |   +-- InsufficientFundsError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- EventChainError
        +-- EventChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                  | When Raised
--------------|-----------------------|-------------------------------------------
Input         | INVALID_INPUT         | Malformed creation / withdrawal parameters
              | AMOUNT_OVERFLOW       | Amount or sum exceeds max_token_amount
--------------|-----------------------|-------------------------------------------
Proposal      | PROPOSAL_NOT_FOUND    | Unknown proposal id
              | INVALID_STATE         | Operation illegal in current state
              | MILESTONES_EXHAUSTED  | No milestone left to pay
--------------|-----------------------|-------------------------------------------
Authorization | UNAUTHORIZED          | Caller is not a controlling authority
--------------|-----------------------|-------------------------------------------
Funds         | TRANSFER_FAILED       | Gateway declined or errored
              | INSUFFICIENT_FUNDS    | Sweep exceeds custody balance
--------------|-----------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION| Write to an immutable record or field
--------------|-----------------------|-------------------------------------------
Events        | EVENT_CHAIN_BROKEN    | Event hash chain validation failed

===============================================================================
HANDLING PATTERNS
===============================================================================

1. TRANSFER FAILURES ARE SAFE TO REPORT:
   A TransferFailedError is raised before any local mutation, and the
   registry rolls the transaction back.  The proposal is exactly as it was.

    except TransferFailedError as e:
        log.warning("payout declined", extra={"asset": e.asset, "amount": e.amount})

2. EVENT CHAIN ERRORS ARE CRITICAL:
   EventChainBrokenError means rows in registry_events were altered outside
   the kernel.  Stop consuming events and investigate.

===============================================================================
"""


class GrantsKernelError(Exception):
    """
    Base exception for all grants kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GRANTS_KERNEL_ERROR"


# Input validation exceptions


class InvalidInputError(GrantsKernelError):
    """Creation or withdrawal parameters are structurally invalid."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid input for '{field}': {reason}")


class AmountOverflowError(InvalidInputError):
    """
    An amount or a sum of amounts exceeds the configured maximum.

    Raised instead of silently wrapping around.
    """

    code: str = "AMOUNT_OVERFLOW"

    def __init__(self, field: str, amount: int, max_amount: int):
        self.amount = amount
        self.max_amount = max_amount
        super().__init__(field, f"amount {amount} exceeds maximum {max_amount}")


# Proposal lifecycle exceptions


class ProposalError(GrantsKernelError):
    """Base exception for proposal lifecycle errors."""

    code: str = "PROPOSAL_ERROR"


class ProposalNotFoundError(ProposalError):
    """Proposal with given id was not found."""

    code: str = "PROPOSAL_NOT_FOUND"

    def __init__(self, proposal_id: int):
        self.proposal_id = proposal_id
        super().__init__(f"Proposal not found: {proposal_id}")


class InvalidStateError(ProposalError):
    """Operation is not legal in the proposal's current lifecycle state."""

    code: str = "INVALID_STATE"

    def __init__(self, proposal_id: int, current_state: str, operation: str):
        self.proposal_id = proposal_id
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} proposal {proposal_id} in state '{current_state}'"
        )


class MilestonesExhaustedError(ProposalError):
    """Every milestone of the proposal has already been paid."""

    code: str = "MILESTONES_EXHAUSTED"

    def __init__(self, proposal_id: int, milestone_count: int):
        self.proposal_id = proposal_id
        self.milestone_count = milestone_count
        super().__init__(
            f"Proposal {proposal_id} has no unpaid milestone "
            f"({milestone_count} of {milestone_count} paid)"
        )


# Authorization exceptions


class AuthorizationError(GrantsKernelError):
    """Base exception for access control errors."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """Caller is not permitted to perform an authority-only operation."""

    code: str = "UNAUTHORIZED"

    def __init__(self, caller: str, operation: str):
        self.caller = caller
        self.operation = operation
        super().__init__(f"Caller {caller} is not authorized to {operation}")


# Funds exceptions


class FundsError(GrantsKernelError):
    """Base exception for fund movement errors."""

    code: str = "FUNDS_ERROR"


class TransferFailedError(FundsError):
    """The fund transfer gateway declined or errored on a transfer."""

    code: str = "TRANSFER_FAILED"

    def __init__(self, asset: str, recipient: str, amount: int, reason: str):
        self.asset = asset
        self.recipient = recipient
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Transfer of {amount} {asset} to {recipient} failed: {reason}"
        )


class InsufficientFundsError(FundsError):
    """Custody balance of an asset does not cover a requested sweep."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, asset: str, requested: int, available: int):
        self.asset = asset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {asset} in custody: requested {requested}, "
            f"available {available}"
        )


# Immutability exceptions


class ImmutabilityError(GrantsKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Disbursements and registry events are immutable from creation; proposals
    have immutable fields and a monotone lifecycle.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Event chain exceptions


class EventChainError(GrantsKernelError):
    """Base exception for registry event chain errors."""

    code: str = "EVENT_CHAIN_ERROR"


class EventChainBrokenError(EventChainError):
    """Registry event hash chain validation failed."""

    code: str = "EVENT_CHAIN_BROKEN"

    def __init__(self, seq: int, expected_hash: str, actual_hash: str):
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Event chain broken at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
