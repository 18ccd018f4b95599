# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Caller token validation using python-jose.

Tokens are issued by the external identity provider. The roster only
decodes them to learn who the caller is, which organization they act for
and which role they hold. create_access_token exists for development
tooling and tests.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload structure.

    Attributes:
        sub: Subject (user ID).
        organization_id: Organization the caller acts for.
        role: Role claim, one of the Role values.
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str
    organization_id: str | None = None
    role: str
    exp: int
    iat: int
    jti: str


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class JWTManager:
    """JWT token decoding for caller identity.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def create_access_token(
        self,
        user_id: str,
        role: str,
        organization_id: str | None = None,
        expires_minutes: int | None = None,
    ) -> str:
        """Create an access token.

        Args:
            user_id: User identifier.
            role: Role claim.
            organization_id: Organization claim.
            expires_minutes: Override for the configured lifetime.

        Returns:
            JWT access token string.
        """
        now = datetime.now(timezone.utc)
        minutes = (
            expires_minutes
            if expires_minutes is not None
            else self._settings.access_token_expire_minutes
        )
        exp = now + timedelta(minutes=minutes)

        payload = {
            "sub": user_id,
            "organization_id": organization_id,
            "role": role,
            "exp": int(exp.timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }

        return jwt.encode(
            payload,
            self._settings.secret_key.get_secret_value(),
            algorithm=self._settings.algorithm,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a JWT token.

        Args:
            token: JWT token string.

        Returns:
            TokenPayload with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid or lacks claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except JoseJWTError as e:
            logger.warning("Token decode failed: %s", str(e))
            raise InvalidTokenError(f"Invalid token: {str(e)}")

        if "sub" not in payload or "role" not in payload:
            raise InvalidTokenError("Token is missing subject or role claim")

        return TokenPayload(
            sub=payload["sub"],
            organization_id=payload.get("organization_id"),
            role=payload["role"],
            exp=payload["exp"],
            iat=payload["iat"],
            jti=payload.get("jti", ""),
        )
