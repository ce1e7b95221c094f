"""
Pytest fixtures for the withholding test suite.

Provides:
- Structured log capture and LogContext hygiene
- An in-memory SQLite engine + session per test (every ledger and
  withholding table created fresh)
- The acting user id

Environment Variables:
- DATABASE_URL: optional database URL.  Defaults to in-memory SQLite; a
  PostgreSQL URL runs the same suite against PostgreSQL.
"""

import json
import logging
import os
from io import StringIO
from uuid import uuid4

import pytest

from withholding_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from withholding_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

DEFAULT_DATABASE_URL = "sqlite://"

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging once for the whole test session."""
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
    Capture withholding_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.evaluate(...)
            logs = captured_logs()
            assert any(r["message"] == "withholding_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("withholding_kernel")
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


@pytest.fixture
def engine():
    """Fresh engine with every table created; disposed after the test."""
    db_engine = init_engine_from_url(get_database_url())
    create_tables()
    yield db_engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    """Session bound to the per-test engine; rolled back and closed afterwards."""
    db_session = get_session()
    yield db_session
    db_session.rollback()
    db_session.close()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID
