"""
Name: Route / UI Guards

Responsibilities:
  - Evaluate a guard (require_auth, role, permission) against AccessControl
  - Resolve every denial into exactly one outcome: hide, redirect or message
  - Provide the shorthand guards used by routes and UI elements

Collaborators:
  - identity.access_control.AccessControl: predicates
  - web.routes: maps GuardDecision to HTTP responses

Constraints:
  - Checks run in order: authentication, role, permission
  - Unset checks are vacuously satisfied
  - Protected content is never allowed by default on an evaluation error

Notes:
  - Role and permission lists use OR semantics (AccessControl predicates)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..logger import logger
from .access_control import AccessControl
from .rbac import STAFF_ROLES, Permission, UserRole

LOGIN_PATH = "/login"
FORBIDDEN_PATH = "/403"

DEFAULT_LOGIN_MESSAGE = "Please login to access this feature"
DEFAULT_DENIED_MESSAGE = "You do not have permission to access this feature"


class DenialMode(str, Enum):
    HIDE = "hide"
    REDIRECT = "redirect"
    MESSAGE = "message"


class DenialReason(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    ROLE = "role"
    PERMISSION = "permission"
    ERROR = "error"


@dataclass(frozen=True)
class GuardSpec:
    """R: What a guarded route/element requires and how it fails.

    Attributes:
        require_auth: deny unauthenticated users
        roles: allowed roles (OR); None means no role check
        permissions: accepted permissions (OR); None means no permission check
        on_denied: HIDE, REDIRECT or MESSAGE
        fallback: redirect target (REDIRECT); defaults per reason
        message: explanatory text (MESSAGE); defaults per reason
    """

    require_auth: bool = False
    roles: tuple[UserRole | str, ...] | None = None
    permissions: tuple[Permission | str, ...] | None = None
    on_denied: DenialMode = DenialMode.HIDE
    fallback: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    mode: DenialMode | None = None
    reason: DenialReason | None = None
    redirect_to: str | None = None
    message: str | None = None


ALLOW = GuardDecision(allowed=True)


def _deny(spec: GuardSpec, reason: DenialReason) -> GuardDecision:
    if spec.on_denied == DenialMode.REDIRECT:
        default = LOGIN_PATH if reason == DenialReason.NOT_AUTHENTICATED else FORBIDDEN_PATH
        return GuardDecision(
            allowed=False,
            mode=DenialMode.REDIRECT,
            reason=reason,
            redirect_to=spec.fallback or default,
        )
    if spec.on_denied == DenialMode.MESSAGE:
        default = (
            DEFAULT_LOGIN_MESSAGE
            if reason == DenialReason.NOT_AUTHENTICATED
            else DEFAULT_DENIED_MESSAGE
        )
        return GuardDecision(
            allowed=False,
            mode=DenialMode.MESSAGE,
            reason=reason,
            message=spec.message or default,
        )
    return GuardDecision(allowed=False, mode=DenialMode.HIDE, reason=reason)


def evaluate_guard(access: AccessControl, spec: GuardSpec) -> GuardDecision:
    """R: Apply the guard decision table."""
    try:
        authenticated = access.check_expiry()
        if spec.require_auth and not authenticated:
            return _deny(spec, DenialReason.NOT_AUTHENTICATED)
        if spec.roles is not None and not access.has_role(spec.roles):
            return _deny(spec, DenialReason.ROLE)
        if spec.permissions is not None and not access.has_permission(spec.permissions):
            return _deny(spec, DenialReason.PERMISSION)
        return ALLOW
    except Exception:
        logger.exception("Guard evaluation failed")
        return _deny(spec, DenialReason.ERROR)


def _tuple(values: UserRole | Permission | str | Iterable) -> tuple:
    if isinstance(values, (str, bytes)):
        return (values,)
    return tuple(values)


# ---------------------------------------------------------------------------
# Shorthands
# ---------------------------------------------------------------------------


def require_auth(fallback: str = LOGIN_PATH) -> GuardSpec:
    return GuardSpec(require_auth=True, on_denied=DenialMode.REDIRECT, fallback=fallback)


def require_role(
    role: UserRole | str | Iterable[UserRole | str], fallback: str = FORBIDDEN_PATH
) -> GuardSpec:
    return GuardSpec(
        roles=_tuple(role), on_denied=DenialMode.REDIRECT, fallback=fallback
    )


def require_permission(
    permission: Permission | str | Iterable[Permission | str],
    fallback: str = FORBIDDEN_PATH,
) -> GuardSpec:
    return GuardSpec(
        permissions=_tuple(permission), on_denied=DenialMode.REDIRECT, fallback=fallback
    )


def admin_only() -> GuardSpec:
    return GuardSpec(roles=(UserRole.ADMIN,))


def seller_only() -> GuardSpec:
    return GuardSpec(roles=(UserRole.SELLER,))


def customer_only() -> GuardSpec:
    return GuardSpec(roles=(UserRole.CUSTOMER,))


def staff_only() -> GuardSpec:
    return GuardSpec(roles=STAFF_ROLES)


def evaluate_protected_route(
    access: AccessControl,
    *,
    required_role: UserRole | str | None = None,
    allowed_roles: Iterable[UserRole | str] = (),
    required_permission: Permission | str | Iterable[Permission | str] | None = None,
) -> GuardDecision:
    """R: Page-level protection: unauthenticated -> /login, otherwise -> /403."""
    auth_decision = evaluate_guard(access, require_auth())
    if not auth_decision.allowed:
        return auth_decision

    specs = []
    if required_role is not None:
        specs.append(require_role(required_role))
    allowed = tuple(allowed_roles)
    if allowed:
        specs.append(require_role(allowed))
    if required_permission is not None:
        specs.append(require_permission(required_permission))

    for spec in specs:
        decision = evaluate_guard(access, spec)
        if not decision.allowed:
            return decision
    return ALLOW
