"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT (HTTP)
- Token authentication for WebSocket connections
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import ValidationError

from src.auth.schemas import AuthenticatedUser
from src.auth.security import decode_access_token
from src.core.context import set_user_id
from src.core.logging import get_logger


logger = get_logger(__name__)


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def resolve_user(token: str) -> AuthenticatedUser:
    """Decode a token into the authenticated user.

    Raises:
        JWTError: If the token is invalid, expired or malformed
    """
    payload = decode_access_token(token)
    try:
        return AuthenticatedUser.from_payload(payload)
    except (ValueError, ValidationError) as e:
        raise JWTError(f"Invalid token claims: {e}") from e


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Get current authenticated user from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token de acesso nao fornecido",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = resolve_user(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalido ou expirado",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Set user_id in context for logging
    set_user_id(user.id)
    return user


def authenticate_websocket(token: str) -> UUID | None:
    """Authenticate a WebSocket connection using a JWT token.

    Returns the user id if valid, None otherwise.
    """
    try:
        return resolve_user(token).id
    except JWTError as e:
        logger.warning("websocket_auth_failed", error=str(e))
    return None


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
