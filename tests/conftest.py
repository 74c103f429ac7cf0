"""
Pytest fixtures for the grants kernel test suite.

Provides:
- An in-memory SQLite database per test (tables and sequence counters created)
- A session factory, a session, a deterministic clock
- A funded in-memory transfer gateway and a static authority gate
- A fully wired ProposalRegistry plus a ``make_proposal`` factory
- A file-backed SQLite database for thread-based concurrency tests
- Structured log capture

No external database is required.  Set nothing; run ``pytest``.
"""

import json
import logging
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from grants_kernel.db.engine import build_engine, create_tables
from grants_kernel.db.immutability import register_immutability_listeners
from grants_kernel.domain.clock import DeterministicClock
from grants_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from grants_kernel.services.authority import StaticAuthorityGate
from grants_kernel.services.proposal_registry import ProposalRegistry
from grants_kernel.services.transfer_gateway import InMemoryTransferGateway

ADMIN = "0xadmin"
PROPOSER = "0xalice"
RECEIVER = "0xreceiver"
ASSET = "USDC"
INITIAL_CUSTODY = 1_000_000


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture grants_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, registry):
            registry.create_proposal(...)
            logs = captured_logs()
            assert any(r["message"] == "proposal_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("grants_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    """ORM immutability listeners are always on, as in production."""
    register_immutability_listeners()
    yield


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A fresh in-memory SQLite database with all tables created."""
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """A session on the per-test database.  Uncommitted work is discarded."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    """A file-backed SQLite database, usable from several threads."""
    eng = build_engine(f"sqlite:///{tmp_path / 'grants.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_session_factory(file_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=file_engine, expire_on_commit=False)


# =============================================================================
# Registry collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def admin() -> str:
    """Address of the controlling authority."""
    return ADMIN


@pytest.fixture
def gateway() -> InMemoryTransferGateway:
    """Gateway holding INITIAL_CUSTODY of ASSET."""
    return InMemoryTransferGateway({ASSET: INITIAL_CUSTODY})


@pytest.fixture
def authority_gate() -> StaticAuthorityGate:
    return StaticAuthorityGate([ADMIN])


@pytest.fixture
def registry(session_factory, gateway, authority_gate, deterministic_clock) -> ProposalRegistry:
    return ProposalRegistry(
        session_factory,
        gateway=gateway,
        authority=authority_gate,
        clock=deterministic_clock,
    )


@pytest.fixture
def make_proposal(registry):
    """
    Factory fixture: create (and optionally accept) a proposal.

    Returns the ProposalInfo as stored after the last step.
    """

    def _make(
        milestones=(100, 250, 650),
        accept: bool = False,
        proposer: str = PROPOSER,
        receiver: str = RECEIVER,
        asset: str = ASSET,
        tags=("docs",),
    ):
        proposal_id = registry.create_proposal(
            proposer,
            "Documentation overhaul",
            "Rewrite the user guide",
            "https://example.org/proposals/docs",
            list(milestones),
            receiver,
            asset,
            list(tags),
        )
        if accept:
            return registry.accept_proposal(ADMIN, proposal_id)
        return registry.get_proposal(proposal_id)

    return _make
