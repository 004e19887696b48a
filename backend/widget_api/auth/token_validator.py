"""
Widget API Backend: Bearer Token Validator
=============================================

What:  Verifies externally issued HS256 JWTs and extracts their claims.
How:   PyJWT checks the signature, `exp`, `iat` and `iss`; every failure is
       collapsed into a single InvalidTokenError.
Who:   Called by the authentication dependency for every protected request.

Contract:
    validate(token) -> TokenClaims | raises InvalidTokenError

    - Signature: HMAC-SHA-256 with the pre-shared key (JWT_SECRET, base64)
    - Issuer:    must equal JWT_ISSUER exactly
    - Window:    iat <= now <= exp (with optional JWT_LEEWAY_SECONDS)
    - Required:  sub, iss, iat, exp
    - Audience/role claims are passed through in TokenClaims.extra, not enforced

    The caller never learns WHY a token was rejected. Signature failure,
    expiry and issuer mismatch all look the same from outside; the reason is
    logged at DEBUG only.

This module performs no I/O. It never creates tokens.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict

import jwt

from widget_api.config import Settings, settings

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp"]
_REGISTERED = frozenset(REQUIRED_CLAIMS)


class InvalidTokenError(Exception):
    """Raised when a bearer token is not acceptable, for any reason."""


@dataclass(frozen=True)
class JwtConfig:
    """Immutable validator configuration, built once at startup."""

    key: bytes = field(repr=False)
    issuer: str
    leeway_seconds: int = 0
    algorithm: str = "HS256"

    @classmethod
    def from_settings(cls, source: Settings) -> "JwtConfig":
        """
        Decode the base64 signing key from settings.

        Raises:
            ValueError: JWT_SECRET is empty or not valid base64
        """
        try:
            key = base64.b64decode(source.jwt_secret.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("JWT_SECRET is not valid base64") from e
        if not key:
            raise ValueError("JWT_SECRET must not be empty")
        return cls(
            key=key,
            issuer=source.jwt_issuer,
            leeway_seconds=source.jwt_leeway_seconds,
        )


@dataclass(frozen=True)
class TokenClaims:
    """Claims of a validated token."""

    subject: str
    issuer: str
    issued_at: datetime
    expires_at: datetime
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def role(self) -> Any:
        return self.extra.get("role")

    @property
    def audience(self) -> Any:
        return self.extra.get("aud")


class TokenValidator:
    """Stateless HS256 token verifier bound to one JwtConfig."""

    def __init__(self, config: JwtConfig):
        self._config = config

    @property
    def issuer(self) -> str:
        return self._config.issuer

    def validate(self, token: str) -> TokenClaims:
        """
        Verify `token` and return its claims.

        Raises:
            InvalidTokenError: bad signature, malformed token, wrong issuer,
                               expired, not yet valid, or missing claims
        """
        try:
            payload = jwt.decode(
                token,
                self._config.key,
                algorithms=[self._config.algorithm],
                issuer=self._config.issuer,
                leeway=self._config.leeway_seconds,
                options={"require": REQUIRED_CLAIMS, "verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.debug("Token rejected: %s", type(e).__name__)
            raise InvalidTokenError("Invalid token") from None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.debug("Token rejected: empty or non-string subject")
            raise InvalidTokenError("Invalid token")

        issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

        # iat in the future is rejected regardless of PyJWT version
        now = datetime.now(timezone.utc)
        if issued_at > now + timedelta(seconds=self._config.leeway_seconds):
            logger.debug("Token rejected: issued in the future")
            raise InvalidTokenError("Invalid token")

        return TokenClaims(
            subject=subject,
            issuer=payload["iss"],
            issued_at=issued_at,
            expires_at=expires_at,
            extra={k: v for k, v in payload.items() if k not in _REGISTERED},
        )


@lru_cache(maxsize=1)
def get_token_validator() -> TokenValidator:
    """Process-wide validator built from the settings singleton."""
    return TokenValidator(JwtConfig.from_settings(settings))
