"""
Widget API Backend: Bearer Authentication Dependencies
=========================================================

What:  Turns the Authorization header into a Principal, or refuses the request.
How:   authenticate() is a pure function of (header, validator).
       get_current_principal() wraps it as a FastAPI dependency and raises
       AuthenticationRequiredError, which the error translator renders as a
       401 with a WWW-Authenticate challenge.
Who:   Every /api/widgets route depends on get_current_principal.

Trust model:
    Identity is trust-on-validation. A token with a valid signature, the
    expected issuer and a current validity window yields a Principal whose
    subject is the token's `sub`. No database lookup confirms the subject.

Outcomes:
    No header / wrong scheme / empty token  → unauthenticated (validator not called)
    Validator rejects token                 → unauthenticated
    Validator accepts token                 → Principal(subject=sub)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from widget_api.auth.token_validator import (
    InvalidTokenError,
    TokenClaims,
    TokenValidator,
    get_token_validator,
)
from widget_api.config import settings
from widget_api.exceptions import AuthenticationRequiredError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller for the duration of one request.

    `subject` is the owning identifier compared against Widget.owner_id.
    `claims` carries auxiliary claims (role, aud) which are not enforced.
    """

    subject: str
    claims: Optional[TokenClaims] = None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token after a case-insensitive "Bearer " prefix, else None."""
    if not authorization:
        return None
    if authorization[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX.lower():
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate(
    authorization: Optional[str],
    validator: TokenValidator,
) -> Optional[Principal]:
    """
    Resolve the caller from an Authorization header value.

    Returns None for every unauthenticated case; never raises for bad input.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        logger.debug("No bearer token in Authorization header")
        return None

    try:
        claims = validator.validate(token)
    except InvalidTokenError:
        logger.debug("Bearer token failed validation")
        return None

    return Principal(subject=claims.subject, claims=claims)


def challenge_header(realm: Optional[str] = None) -> str:
    """WWW-Authenticate value sent with every 401."""
    return f'Bearer realm="{realm or settings.auth_realm}", charset="UTF-8"'


async def get_current_principal(
    authorization: Optional[str] = Header(None),
    validator: TokenValidator = Depends(get_token_validator),
) -> Principal:
    """
    FastAPI dependency: the authenticated Principal (required).

    Raises:
        AuthenticationRequiredError: no usable, valid bearer token (→ 401)
    """
    principal = authenticate(authorization, validator)
    if principal is None:
        raise AuthenticationRequiredError()
    return principal
