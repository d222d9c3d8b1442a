"""
Pytest fixtures for the inventory kernel test suite.

Provides:
- A fresh database (tables created per test) behind a session factory
- The InventoryService / coordinator wired to a deterministic clock
- Committed master data (items and warehouses) for the scenarios
- Log capture as parsed JSON dicts

Environment Variables:
- DATABASE_URL: database to run against.  Defaults to in-memory SQLite so
  the suite runs without a server.  Tests that need real row locks are
  marked ``postgres`` and skipped on other backends.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import TransactionLineRequest, TransactionRequest
from inventory_kernel.domain.units import UnitConversion
from inventory_kernel.domain.values import ConversionOperator, TransactionType
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services import InventoryService, MasterDataService

DEFAULT_DATABASE_URL = "sqlite://"

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL row locks"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def pytest_collection_modifyitems(config, items):
    if get_database_url().startswith("postgresql"):
        return
    skip = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip)


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
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.submit_transaction(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
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
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Engine with freshly created tables, torn down after the test."""
    eng = init_engine_from_url(
        get_database_url(),
        pool_size=20,
        max_overflow=10,
        pool_timeout=10,
        lock_timeout_ms=2000,
    )
    drop_tables(eng)
    create_tables(eng)
    yield eng
    drop_tables(eng)
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """
    A plain session for direct ORM inspection.

    Commit any setup before calling the coordinator: every unit of work
    opens its own session.
    """
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def service(session_factory, deterministic_clock) -> InventoryService:
    return InventoryService(
        session_factory,
        clock=deterministic_clock,
        lock_timeout_ms=2000,
    )


@pytest.fixture
def coordinator(service):
    return service.coordinator


# =============================================================================
# Master data
# =============================================================================


@dataclass(frozen=True)
class MasterData:
    """Committed items and warehouses shared by the scenario tests."""

    pcs_item: UUID      # A001: base Pcs, Box = *10, Half = /2
    kg_item: UUID       # B001: base Kg, Gram = /1000
    main: UUID          # W1 "Main"
    branch: UUID        # W2 "Branch"


@pytest.fixture
def create_master_data(session_factory):
    """Factory fixture: commit items/warehouses through MasterDataService."""

    def _run(fn):
        sess = session_factory()
        try:
            result = fn(MasterDataService(sess))
            sess.commit()
            return result
        finally:
            sess.close()

    return _run


@pytest.fixture
def master_data(create_master_data, test_actor_id) -> MasterData:
    def _setup(md: MasterDataService) -> MasterData:
        pcs = md.create_item(
            code="A001",
            name="Widget",
            base_unit="Pcs",
            conversions=[
                UnitConversion("Box", Decimal("10"), ConversionOperator.MULTIPLY),
                UnitConversion("Half", Decimal("2"), ConversionOperator.DIVIDE),
            ],
            min_stock=Decimal("5"),
            actor_id=test_actor_id,
        )
        kg = md.create_item(
            code="B001",
            name="Flour",
            base_unit="Kg",
            conversions=[UnitConversion("Gram", Decimal("1000"), ConversionOperator.DIVIDE)],
            actor_id=test_actor_id,
        )
        main = md.create_warehouse("Main", location="Jakarta")
        branch = md.create_warehouse("Branch", location="Bandung")
        return MasterData(pcs_item=pcs.id, kg_item=kg.id, main=main.id, branch=branch.id)

    return create_master_data(_setup)


# =============================================================================
# Request builders
# =============================================================================


@pytest.fixture
def make_request():
    """
    Factory fixture for TransactionRequest.

    Lines are ``(item_id, qty, unit)`` tuples; qty may be a str or int.
    """
    counter = {"n": 0}

    def _make(
        transaction_type: TransactionType,
        source: UUID,
        lines,
        target: UUID | None = None,
        reference_no: str | None = None,
        transaction_date: date = date(2024, 1, 15),
        **header,
    ) -> TransactionRequest:
        counter["n"] += 1
        return TransactionRequest(
            reference_no=reference_no or f"REF-{counter['n']:04d}",
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            source_warehouse_id=source,
            target_warehouse_id=target,
            lines=tuple(
                TransactionLineRequest(item_id=item_id, qty=Decimal(str(qty)), unit=unit)
                for item_id, qty, unit in lines
            ),
            **header,
        )

    return _make
