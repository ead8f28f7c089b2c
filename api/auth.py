"""
API Authentication for the clinic signal engine.

Single shared bearer token read from CLINICOPS_API_TOKEN.

Token extraction order:
1. Authorization: Bearer <token> header
2. X-API-Token header

Usage:
    from api.auth import require_auth

    @router.get("/protected", dependencies=[Depends(require_auth)])
    def protected_endpoint(): ...
"""

import logging
import os
import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinicops.config import API_TOKEN_ENV

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)


def _get_token_from_env() -> str | None:
    """Get the expected token from environment."""
    return os.environ.get(API_TOKEN_ENV)


def _get_token_from_request(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]

    x_token = request.headers.get("X-API-Token")
    if x_token:
        return x_token

    return None


async def require_auth(
    request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(security)
) -> str:
    """
    Dependency that requires a valid token.

    Returns the validated token on success, raises HTTPException 401 on
    failure. If CLINICOPS_API_TOKEN is unset, WARNS but allows (development
    mode).
    """
    expected_token = _get_token_from_env()

    if not expected_token:
        logger.warning(f"{API_TOKEN_ENV} not set - authentication disabled!")
        return "auth_disabled"

    provided_token = _get_token_from_request(request)
    if not provided_token:
        logger.warning(f"Auth failed: no token provided for {request.url.path}")
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide Bearer token in Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Constant-time comparison
    if not secrets.compare_digest(provided_token, expected_token):
        logger.warning(f"Auth failed: invalid token for {request.url.path}")
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return provided_token
