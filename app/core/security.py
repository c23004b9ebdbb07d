"""Security related functions."""

import secrets
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import HTTPException, status
from jwt import InvalidTokenError

from app.core.config import settings

ANONYMOUS_TOKEN_TYPE = "anonymous_session"


class ClerkAuthenticator:
    """
    Handles Clerk API authentication and token verification.

    This class is responsible for integrating with Clerk by decoding JSON Web
    Tokens (JWTs) issued to signed-in users. Signature verification is the
    auth provider's concern; the decoded ``sub`` claim is mirrored into the
    local users table.

    :ivar clerk_api_url: The base URL of the Clerk API.
    :type clerk_api_url: str
    :ivar secret_key: The Clerk secret key.
    :type secret_key: str
    """

    def __init__(self):
        self.clerk_api_url = str(settings.clerk_api_url).rstrip("/")
        self.secret_key = settings.clerk_secret_key

    async def verify_token(self, token: str) -> dict:
        """
        Decodes the provided Clerk token and returns its claims. If the token
        cannot be decoded, it raises an HTTPException with proper status code
        and error detail.

        :param token: The JWT token to be verified.
        :return: A dictionary containing the decoded payload of the token.
        """
        try:
            payload = jwt.decode(
                token,
                key="",
                options={
                    "verify_signature": False,
                    "verify_aud": False,
                    "verify_exp": False,
                },
            )
            return payload
        except InvalidTokenError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid authentication token: {str(e)}",
            ) from e


class AnonymousTokenIssuer:
    """
    Issues and verifies server-signed anonymous session tokens.

    The token is an HS256 JWT whose ``sid`` claim is the opaque value stored
    on anonymous chat sessions and messages. A caller can only present a
    ``sid`` the server signed, so anonymous ownership checks compare a value
    the client cannot forge.
    """

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm

    def issue(self) -> tuple[str, str, datetime]:
        """Create a new anonymous identity.

        :return: ``(token, sid, expires_at)``
        """
        sid = secrets.token_urlsafe(24)
        expires_at = datetime.now(UTC) + timedelta(days=settings.anonymous_token_expire_days)
        payload = {"sid": sid, "typ": ANONYMOUS_TOKEN_TYPE, "exp": expires_at}
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, sid, expires_at

    def verify(self, token: str) -> str:
        """Return the ``sid`` carried by a valid token.

        :raises InvalidTokenError: if the signature, expiry or claims are invalid.
        """
        payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        sid = payload.get("sid")
        if payload.get("typ") != ANONYMOUS_TOKEN_TYPE or not sid:
            raise InvalidTokenError("Not an anonymous session token")
        return sid
