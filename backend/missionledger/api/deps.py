"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header, HTTPException, Query, status

from ..domain.models import ActorContext, AuditWindow
from ..domain.errors import AuthenticationError, DomainError, ValidationError
from ..engine.audit_writer import AuditTrail
from ..utils.jwt import get_current_user as _jwt_get_current_user  # Internal use only
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id
from ..utils.time import parse_iso


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

    Validates the HS256 bearer token and maps its claims to an ActorContext.

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "AUTHENTICATION_ERROR", "message": "Authorization header is missing"}},
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


async def get_audit_window_dep(
    limit: Optional[int] = Query(None),
    since: Optional[str] = Query(None),
    until: Optional[str] = Query(None)
) -> AuditWindow:
    """
    Bounded audit window from query parameters

    ``since`` and ``until`` are ISO-8601 timestamps.
    """
    try:
        since_dt = parse_iso(since) if since else None
        until_dt = parse_iso(until) if until else None
    except ValueError:
        error = ValidationError(
            "Audit window bounds must be ISO-8601 timestamps",
            details={"since": since, "until": until}
        )
        raise HTTPException(status_code=error.http_status, detail=error.to_dict())

    try:
        return AuditTrail.window(limit=limit, since=since_dt, until=until_dt)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
