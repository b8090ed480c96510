"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status

from ..domain.models import ActorContext, AuditRequestContext
from ..domain.errors import AuthenticationError
from ..repositories.store import RequestStore, get_request_store
from ..services.notification_service import NotificationService
from ..services.request_service import RequestService
from ..utils.jwt import get_current_user as _jwt_get_current_user  # Internal use only
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it.
    Otherwise generate a new one.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Dependency to get current user from Authorization header

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AuthenticationError("Authorization header is missing").to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return _jwt_get_current_user(authorization)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_audit_context_dep(
    request: Request,
    correlation_id: str = Depends(get_correlation_id_dep),
    x_session_id: Optional[str] = Header(None, alias="X-Session-Id"),
) -> AuditRequestContext:
    """Request context preserved in audit metadata"""
    return AuditRequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        session_id=x_session_id,
        correlation_id=correlation_id,
    )


def get_store_dep() -> RequestStore:
    """Configured request store (overridden in tests)"""
    return get_request_store()


def get_request_service_dep(store: RequestStore = Depends(get_store_dep)) -> RequestService:
    return RequestService(store=store)


def get_notification_service_dep(store: RequestStore = Depends(get_store_dep)) -> NotificationService:
    return NotificationService(store=store)
