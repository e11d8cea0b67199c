"""Async database session management."""

from collections.abc import AsyncGenerator
from uuid import UUID

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker

from audittrail.config import settings
from audittrail.core.audit.context import ContextVarAuditContext
from audittrail.core.audit.session import AsyncAuditedSession, AuditedSession
from audittrail.core.database.filters import configure_row_filters


class EngineHolder:
    """Holder for the async engine and its session factory.

    Uses a class attribute to manage module-level state without
    global statements.
    """

    engine: AsyncEngine | None = None
    session_factory: async_sessionmaker[AsyncAuditedSession] | None = None


def _current_tenant() -> UUID | None:
    return ContextVarAuditContext().tenant_id


def get_engine() -> AsyncEngine:
    """Get the async engine, creating it on first use."""
    if EngineHolder.engine is None:
        EngineHolder.engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,  # Verify connections before use
        )
    return EngineHolder.engine


def get_session_factory() -> async_sessionmaker[AsyncAuditedSession]:
    """Get the audited session factory, creating it on first use.

    Sessions read the actor from the request-scoped audit context and
    apply the soft-delete and tenant row filters.
    """
    if EngineHolder.session_factory is None:
        sync_factory = sessionmaker(
            class_=AuditedSession,
            audit_context=ContextVarAuditContext(),
        )
        configure_row_filters(sync_factory, _current_tenant)

        EngineHolder.session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncAuditedSession,
            sync_session_class=sync_factory,
            expire_on_commit=False,
            autoflush=False,
        )
    return EngineHolder.session_factory


async def get_db() -> AsyncGenerator[AsyncAuditedSession, None]:
    """Dependency that provides an audited database session.

    Pending changes are saved through the audited pipeline when the
    request handler returns.

    Usage:
        @router.get("/items")
        async def list_items(db: AsyncAuditedSession = Depends(get_db)):
            ...
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.save_changes()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_engine() -> None:
    """Dispose of the engine.

    Should be called during application shutdown.
    """
    if EngineHolder.engine is not None:
        await EngineHolder.engine.dispose()
        EngineHolder.engine = None
        EngineHolder.session_factory = None
