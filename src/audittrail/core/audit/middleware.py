"""Request-scoped audit context middleware."""

from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from audittrail.core.audit.context import clear_audit_context, set_audit_context


if TYPE_CHECKING:
    from starlette.types import ASGIApp


logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class AuditContextMiddleware(BaseHTTPMiddleware):
    """Middleware that exposes the acting user to audited sessions.

    Reads ``user_id`` and ``tenant_id`` from ``request.state`` (set by
    the authentication middleware, which must run first) and the
    correlation id from the ``X-Request-ID`` header, then stores them in
    the ContextVar read by ``ContextVarAuditContext``. The context is
    cleared once the response has been produced.

    Usage:
        app.add_middleware(AuditContextMiddleware)
        app.add_middleware(AuthMiddleware)  # added last, runs first
    """

    def __init__(self, app: "ASGIApp", request_id_header: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self.request_id_header = request_id_header

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Set the audit context around the request.

        Args:
            request: The incoming request
            call_next: The next middleware/handler

        Returns:
            The response from the handler
        """
        user_id = getattr(request.state, "user_id", None)
        tenant_id = getattr(request.state, "tenant_id", None)
        correlation_id = request.headers.get(self.request_id_header) or getattr(
            request.state, "request_id", None
        )

        set_audit_context(
            user_id=user_id,
            tenant_id=tenant_id,
            correlation_id=correlation_id,
        )
        logger.debug(
            "audit_context_set",
            user_id=str(user_id) if user_id else None,
            tenant_id=str(tenant_id) if tenant_id else None,
            correlation_id=correlation_id,
        )

        try:
            return await call_next(request)
        finally:
            clear_audit_context()
