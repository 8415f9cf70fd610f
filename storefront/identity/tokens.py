"""
Name: Bearer Credential Decoding (JWT)

Responsibilities:
  - Decode the bearer token issued by the auth service
  - Enforce the expiry as a hard boundary against the local clock
  - Validate role/permission claims into the closed RBAC taxonomy
  - Optionally verify the signature when a shared secret is configured

Collaborators:
  - PyJWT: token parsing (and signature verification when enabled)
  - config.get_settings: verification options
  - identity.rbac: parse_role / parse_permissions
  - domain.entities.Identity

Constraints:
  - Claims: userId (or sub), email, username, role, permissions[], exp
  - exp is mandatory; no clock skew compensation
  - Every failure is an AuthError; callers map it to "unauthenticated"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt

from ..config import get_settings
from ..domain.entities import Identity
from ..exceptions import AuthError
from .rbac import UserRole, parse_permissions, parse_role

CLAIM_USER_ID = "userId"
CLAIM_SUB = "sub"
CLAIM_EMAIL = "email"
CLAIM_USERNAME = "username"
CLAIM_ROLE = "role"
CLAIM_PERMISSIONS = "permissions"
CLAIM_EXP = "exp"


@dataclass(frozen=True)
class TokenSettings:
    verify_signature: bool
    secret: str
    algorithm: str


def get_token_settings() -> TokenSettings:
    settings = get_settings()
    return TokenSettings(
        verify_signature=settings.jwt_verify_signature,
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _read_claims(token: str, settings: TokenSettings) -> dict[str, Any]:
    if not isinstance(token, str) or token.count(".") != 2:
        raise AuthError("Malformed token.")
    try:
        if settings.verify_signature:
            return jwt.decode(
                token,
                settings.secret,
                algorithms=[settings.algorithm],
                options={"verify_exp": False},
            )
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token.", original_error=exc) from exc


def decode_access_token(
    token: str,
    *,
    now: datetime | None = None,
    settings: TokenSettings | None = None,
) -> Identity:
    """R: Decode a bearer token into an Identity.

    Raises:
        AuthError: malformed token, missing claims or expired.
    """
    token_settings = settings or get_token_settings()
    claims = _read_claims(token, token_settings)

    exp = claims.get(CLAIM_EXP)
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise AuthError("Token has no expiry.")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    if (now or utc_now()) > expires_at:
        raise AuthError("Token expired.")

    user_id = claims.get(CLAIM_USER_ID) or claims.get(CLAIM_SUB)
    if not user_id:
        raise AuthError("Token has no user id.")

    role = parse_role(claims.get(CLAIM_ROLE))
    if role == UserRole.GUEST:
        raise AuthError("Token does not carry an authenticated role.")

    return Identity(
        role=role,
        user_id=str(user_id),
        email=claims.get(CLAIM_EMAIL),
        username=claims.get(CLAIM_USERNAME),
        permissions=parse_permissions(claims.get(CLAIM_PERMISSIONS)),
        expires_at=expires_at,
    )

