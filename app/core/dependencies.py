# app/core/dependencies.py
import logging

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import AnonymousTokenIssuer, ClerkAuthenticator
from app.database import get_db
from app.domains.user.service import UserService
from app.exceptions.base import AuthenticationError
from app.schemas.chat import Caller
from models import User

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)
auth = ClerkAuthenticator()
anonymous_tokens = AnonymousTokenIssuer()


async def validate_token(token: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """Validate and decode JWT token from Clerk.

    Returns:
        dict: Decoded token payload

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        if not token or not token.credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication token is required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        payload = await auth.verify_token(token.credentials)

        if not payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Token validation error: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def validate_optional_token(
    token: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> dict | None:
    """Decode the bearer token when one is supplied."""
    if not token or not token.credentials:
        return None
    return await validate_token(token)


async def _resolve_user(request: Request | None, payload: dict, db: AsyncSession) -> User:
    clerk_user_id = payload.get("sub")

    if not clerk_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload - missing user ID",
        )

    # Get or create user in local database
    user_service = UserService(db)
    user = await user_service.get_or_create_user(clerk_user_id, payload)

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    if request is not None:
        # Add user info to request state for logging
        request.state.user_id = user.id
        request.state.clerk_user_id = clerk_user_id

    return user


async def get_current_user(
    request: Request,
    payload: dict = Depends(validate_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT payload.

    Returns:
        User: Current authenticated user

    Raises:
        HTTPException: If user not found or inactive
    """
    try:
        return await _resolve_user(request, payload, db)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("User authentication error: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication service error",
        ) from e


async def get_optional_user(
    request: Request,
    payload: dict | None = Depends(validate_optional_token),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Get current user if authenticated, otherwise return None.

    Used for endpoints that also serve anonymous callers.

    Returns:
        Optional[User]: Current user if authenticated, None otherwise
    """
    if not payload:
        return None

    try:
        return await _resolve_user(request, payload, db)
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("Optional user authentication failed: %s", str(e))
        return None


async def get_anonymous_sid(
    x_anonymous_token: str | None = Header(default=None, alias="X-Anonymous-Token"),
) -> str | None:
    """Verify the anonymous session token header and return its ``sid``.

    Raises:
        AuthenticationError: If a token is present but not signed by this server
    """
    if not x_anonymous_token:
        return None
    try:
        return anonymous_tokens.verify(x_anonymous_token)
    except InvalidTokenError as e:
        logger.info("Rejected anonymous token: %s", str(e))
        raise AuthenticationError("Invalid anonymous session token") from e


async def get_caller(
    user: User | None = Depends(get_optional_user),
    anonymous_sid: str | None = Depends(get_anonymous_sid),
) -> Caller:
    """Combine the signed-in user and the anonymous token into one identity.

    A signed-in user always wins; the anonymous token only matters when no
    bearer token is supplied.
    """
    if user is not None:
        return Caller(user_id=user.id)
    return Caller(anonymous_token=anonymous_sid)
