"""Integration tests for the application session factory and get_db."""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from audittrail.core.audit.context import set_audit_context
from audittrail.core.audit.models import EntityChange, EntityChangeOperation
from audittrail.core.audit.session import AsyncAuditedSession
from audittrail.core.database.filters import RowFilter, filters_disabled, remove_row_filters
from audittrail.core.database.session import (
    EngineHolder,
    close_engine,
    get_db,
    get_engine,
    get_session_factory,
)
from tests.models import Customer


pytestmark = pytest.mark.integration


@pytest.fixture
async def app_engine(async_engine: AsyncEngine) -> AsyncGenerator[AsyncEngine, None]:
    """Point the application engine holder at the test database."""
    EngineHolder.engine = async_engine
    EngineHolder.session_factory = None
    yield async_engine
    if EngineHolder.session_factory is not None:
        remove_row_filters(EngineHolder.session_factory.kw["sync_session_class"])
    EngineHolder.engine = None
    EngineHolder.session_factory = None


class TestSessionFactory:
    """Tests for get_session_factory and get_db."""

    @pytest.mark.asyncio
    async def test_factory_is_cached(self, app_engine):
        """Test that the factory and engine are created once."""
        assert get_engine() is app_engine
        assert get_session_factory() is get_session_factory()

    @pytest.mark.asyncio
    async def test_get_db_saves_with_request_context(self, app_engine):
        """Test that get_db audits with the request-scoped actor."""
        user_id, tenant_id = uuid4(), uuid4()
        set_audit_context(user_id=user_id, tenant_id=tenant_id, correlation_id="req-42")

        db = get_db()
        session = await anext(db)
        assert isinstance(session, AsyncAuditedSession)
        session.add(Customer(name="Alice"))
        with pytest.raises(StopAsyncIteration):
            await anext(db)

        async with get_session_factory()() as session:
            [change] = (await session.scalars(select(EntityChange))).all()
            [customer] = (await session.scalars(select(Customer))).all()

        assert change.operation is EntityChangeOperation.CREATE
        assert change.changed_by == user_id
        assert change.correlation_id == "req-42"
        assert customer.tenant_id == tenant_id

    @pytest.mark.asyncio
    async def test_row_filters_follow_request_tenant(self, app_engine):
        """Test that factory sessions only see the request tenant's rows."""
        tenant_a, tenant_b = uuid4(), uuid4()
        async with get_session_factory()() as session:
            session.add_all(
                [
                    Customer(name="a", tenant_id=tenant_a),
                    Customer(name="b", tenant_id=tenant_b),
                ]
            )
            await session.commit()

            set_audit_context(tenant_id=tenant_a)
            visible = (await session.scalars(select(Customer))).all()
            assert [c.name for c in visible] == ["a"]

            with filters_disabled(session, RowFilter.TENANT):
                everything = (await session.scalars(select(Customer))).all()
            assert len(everything) == 2

    @pytest.mark.asyncio
    async def test_get_db_rolls_back_on_error(self, app_engine):
        """Test that a failing request discards pending changes."""
        set_audit_context(tenant_id=uuid4())

        db = get_db()
        session = await anext(db)
        session.add(Customer(name="Alice"))
        with pytest.raises(RuntimeError):
            await db.athrow(RuntimeError("handler failed"))

        async with get_session_factory()() as session:
            with filters_disabled(session, RowFilter.TENANT):
                assert (await session.scalars(select(Customer))).all() == []
            assert (await session.scalars(select(EntityChange))).all() == []

    @pytest.mark.asyncio
    async def test_close_engine(self, async_engine):
        """Test that closing resets the holder."""
        EngineHolder.engine = async_engine

        await close_engine()

        assert EngineHolder.engine is None
        assert EngineHolder.session_factory is None
