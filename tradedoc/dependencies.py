"""
TradeDoc Tracker - FastAPI Dependencies

Shared dependencies for authentication, database sessions, and RBAC.

This module provides dependency injection for:
1. Database sessions
2. Current actor authentication (JWT issued upstream)
3. Permission-based access control
"""

from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tradedoc.utils.permissions import Actor, Permission, has_permission, parse_role
from tradedoc.utils.security import verify_access_token


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


async def get_current_actor(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Build the acting user from the bearer token.

    Token can be provided via:
    1. Authorization: Bearer <token> header
    2. access_token cookie

    Raises:
        HTTPException: 401 if the token is missing or invalid, 403 for an unknown role
    """
    token = None

    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get("access_token")
        if token and token.startswith("Bearer "):
            token = token[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor_id = payload.get("sub")
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = parse_role(payload.get("role"))
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No recognised role assigned",
        )

    return Actor(id=str(actor_id), name=payload.get("name") or str(actor_id), role=role)


def require_actor_permission(required_permissions: List[Permission]):
    """
    Require specific permissions.

    Usage:
        @router.get("/transactions")
        async def list_transactions(
            actor: Actor = Depends(require_actor_permission([Permission.VIEW_TRANSACTIONS]))
        ):
            ...
    """
    async def permission_checker(
        actor: Actor = Depends(get_current_actor),
    ) -> Actor:
        missing_permissions = [
            perm.value for perm in required_permissions
            if not has_permission(actor.role, perm)
        ]

        if missing_permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required permissions: {', '.join(missing_permissions)}",
            )

        return actor

    return permission_checker
