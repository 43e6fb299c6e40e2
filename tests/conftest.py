"""
Shared fixtures.

Everything here runs against an in-memory SQLite database holding every
billing table.  SQLite drops tzinfo on the way back, so ``clock`` returns
naive datetimes; pure-domain tests that need aware values build them inline.

``captured_logs`` returns the JSON records written under ``billing_kernel``
while the test ran.
"""

import json
import logging
from datetime import datetime
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from billing_kernel.db.base import Base
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

import billing_batch.models  # noqa: F401  registers the mapped tables
from billing_batch.domain.types import TenantScope

ACTOR_ID = uuid4()


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _json_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    namespace = logging.getLogger("billing_kernel")
    level = namespace.level
    namespace.setLevel(logging.DEBUG)
    namespace.addHandler(handler)

    yield lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line]

    namespace.removeHandler(handler)
    namespace.setLevel(level)


# -----------------------------------------------------------------------------
# Database
# -----------------------------------------------------------------------------


@pytest.fixture
def engine():
    # One shared connection: sessions and the scheduler thread see one database.
    engine = create_engine(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


# -----------------------------------------------------------------------------
# Time and tenants
# -----------------------------------------------------------------------------


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=datetime(2025, 1, 16, 9, 0, 0))


@pytest.fixture
def actor_id():
    return ACTOR_ID


@pytest.fixture
def tenant(actor_id):
    return TenantScope(tenant_id="acme", schema_name="tenant_acme", actor_id=actor_id)


@pytest.fixture
def other_tenant(actor_id):
    return TenantScope(tenant_id="globex", schema_name="tenant_globex", actor_id=actor_id)
