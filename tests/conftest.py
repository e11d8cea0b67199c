"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Generator
from uuid import UUID, uuid4

import pytest
import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from audittrail.core.audit.context import StaticAuditContext, clear_audit_context
from audittrail.core.audit.metadata import PropertyRegistry
from audittrail.core.audit.models import EntityChange, EntityChangeProperty  # noqa: F401
from audittrail.core.audit.session import AsyncAuditedSession, AuditedSession
from audittrail.core.database.base import Base

# Import all models to ensure they're registered with Base.metadata
from tests.models import Customer, Invoice, OrderLine, Tag  # noqa: F401


TEST_DATABASE_URL = "sqlite://"
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def reset_audit_context() -> Generator[None, None, None]:
    """Make sure no test leaks a request-scoped audit context."""
    clear_audit_context()
    yield
    clear_audit_context()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo any structlog configuration made by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def user_id() -> UUID:
    """ID of the acting user."""
    return uuid4()


@pytest.fixture
def tenant_id() -> UUID:
    """ID of the current tenant."""
    return uuid4()


@pytest.fixture
def audit_context(user_id: UUID, tenant_id: UUID) -> StaticAuditContext:
    """Authenticated actor context with a correlation id."""
    return StaticAuditContext(
        user_id=user_id,
        tenant_id=tenant_id,
        correlation_id="req-1",
    )


@pytest.fixture
def registry() -> PropertyRegistry:
    """Fresh property registry so cached resolutions never leak between tests."""
    return PropertyRegistry()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an in-memory SQLite engine with all tables."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(
    engine: Engine,
    audit_context: StaticAuditContext,
    registry: PropertyRegistry,
) -> sessionmaker[AuditedSession]:
    """Factory for lenient audited sessions bound to the test engine."""
    return sessionmaker(
        bind=engine,
        class_=AuditedSession,
        expire_on_commit=False,
        audit_context=audit_context,
        audit_registry=registry,
        audit_strict=False,
    )


@pytest.fixture
def session(session_factory: sessionmaker[AuditedSession]) -> Generator[AuditedSession, None, None]:
    """Provide an audited session for a test."""
    with session_factory() as session:
        yield session


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory aiosqlite engine with all tables."""
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(
    async_engine: AsyncEngine,
    audit_context: StaticAuditContext,
    registry: PropertyRegistry,
) -> AsyncGenerator[AsyncAuditedSession, None]:
    """Provide an async audited session for a test."""
    factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncAuditedSession,
        expire_on_commit=False,
        audit_context=audit_context,
        audit_registry=registry,
        audit_strict=False,
    )
    async with factory() as session:
        yield session
