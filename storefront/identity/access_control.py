"""
Name: Access Control (identity state + RBAC predicates)

Responsibilities:
  - Resolve the identity from the stored bearer credential at start-up
  - Drive the guest <-> authenticated transition (login, signup, logout)
  - Expose role/permission predicates for guards and conditional UI
  - Notify listeners (CartStore) when the identity changes

Collaborators:
  - domain.repositories.KeyValueStore: auth-token / isLoggedIn keys
  - domain.services.AuthService: login / signup
  - identity.tokens: decode_access_token
  - identity.rbac: roles, permissions, display names
  - context.user_id_var: log correlation

Constraints:
  - Predicates never raise; any internal error yields False
  - login/signup return AuthResult, never raise
  - logout is synchronous: state and storage are reset before it returns
  - Expired or malformed credentials are purged from storage, not ignored

Notes:
  - Listeners are plain callables (previous, current); async reactions
    (the cart merge) are scheduled by the listener itself
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Mapping

from ..context import user_id_var
from ..domain.entities import GUEST_IDENTITY, Identity
from ..domain.repositories import AUTH_TOKEN_KEY, LOGGED_IN_KEY, KeyValueStore
from ..domain.services import AuthService
from ..exceptions import AuthError, StorefrontError
from ..logger import logger
from .rbac import (
    ROLE_DISPLAY_NAMES,
    Permission,
    UserRole,
    parse_permission,
    permission_token,
)
from .tokens import TokenSettings, decode_access_token, utc_now

IdentityListener = Callable[[Identity, Identity], None]
RoleArg = UserRole | str | Iterable[UserRole | str]
PermissionArg = Permission | str | Iterable[Permission | str]


@dataclass(frozen=True)
class AuthResult:
    identity: Identity | None = None
    error: AuthError | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.identity is not None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def _role_value(role: UserRole | str) -> str:
    if isinstance(role, UserRole):
        return role.value
    return str(role).strip().lower()


class AccessControl:
    """R: Owns the decoded identity and answers role/permission questions."""

    def __init__(
        self,
        storage: KeyValueStore,
        auth_service: AuthService,
        *,
        now: Callable[[], datetime] = utc_now,
        token_settings: TokenSettings | None = None,
    ):
        self._storage = storage
        self._auth_service = auth_service
        self._now = now
        self._token_settings = token_settings
        self._identity: Identity = GUEST_IDENTITY
        self._initialized = False
        self._listeners: list[IdentityListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def identity(self) -> Identity:
        """R: Current identity, downgraded to guest once the expiry passes."""
        identity = self._identity
        if identity.is_authenticated and identity.is_expired(self._now()):
            return GUEST_IDENTITY
        return identity

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_authenticated(self) -> bool:
        return self.identity.is_authenticated

    @property
    def role(self) -> UserRole:
        return self.identity.role

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id

    @property
    def permissions(self) -> frozenset[Permission]:
        return self.identity.permissions

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """R: Register an identity listener; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> Identity:
        """R: Re-derive the identity from the stored credential.

        Absent, expired or undecodable credentials leave the session as
        guest and are erased from storage.
        """
        identity = self._load_stored_identity() or GUEST_IDENTITY
        self._initialized = True
        self._set_identity(identity)
        return identity

    def _load_stored_identity(self) -> Identity | None:
        token = self._storage.get(AUTH_TOKEN_KEY)
        if not token:
            return None
        try:
            return self._decode(token)
        except AuthError as exc:
            logger.info("Stored credential rejected", extra={"reason": exc.message})
        except Exception:
            logger.exception("Unexpected error decoding stored credential")
        self._clear_credential()
        return None

    async def login(self, credentials: Mapping[str, Any]) -> AuthResult:
        """R: Authenticate through the auth service (never raises)."""
        return await self._authenticate("login", self._auth_service.login, credentials)

    async def signup(self, user_data: Mapping[str, Any]) -> AuthResult:
        """R: Register through the auth service (never raises)."""
        return await self._authenticate("signup", self._auth_service.signup, user_data)

    async def _authenticate(
        self,
        action: str,
        call: Callable[[Mapping[str, Any]], Awaitable[str]],
        payload: Mapping[str, Any],
    ) -> AuthResult:
        try:
            token = await call(payload)
            identity = self._decode(token)
        except AuthError as exc:
            logger.info(
                "Authentication rejected", extra={"action": action, "reason": exc.message}
            )
            return AuthResult(error=exc)
        except StorefrontError as exc:
            logger.warning(
                "Authentication failed", extra={"action": action, "reason": exc.message}
            )
            return AuthResult(
                error=AuthError(f"{action.capitalize()} failed.", original_error=exc)
            )
        except Exception as exc:
            logger.exception("Unexpected authentication error", extra={"action": action})
            return AuthResult(
                error=AuthError(f"{action.capitalize()} failed.", original_error=exc)
            )

        self._storage.set(AUTH_TOKEN_KEY, token)
        self._storage.set(LOGGED_IN_KEY, "true")
        self._initialized = True
        self._set_identity(identity)
        logger.info(
            "Authentication succeeded",
            extra={"action": action, "role": identity.role.value},
        )
        return AuthResult(identity=identity)

    def logout(self) -> None:
        """R: Erase the credential and reset to guest, synchronously."""
        self._clear_credential()
        self._set_identity(GUEST_IDENTITY)

    def check_expiry(self) -> bool:
        """R: Log out if the loaded identity has expired.

        Returns:
            True while the session still holds a valid authenticated identity.
        """
        identity = self._identity
        if identity.is_authenticated and identity.is_expired(self._now()):
            logger.info("Credential expired, logging out")
            self.logout()
            return False
        return identity.is_authenticated

    def _decode(self, token: str) -> Identity:
        return decode_access_token(
            token, now=self._now(), settings=self._token_settings
        )

    def _clear_credential(self) -> None:
        self._storage.remove(AUTH_TOKEN_KEY)
        self._storage.remove(LOGGED_IN_KEY)

    def _set_identity(self, identity: Identity) -> None:
        previous = self._identity
        self._identity = identity
        user_id_var.set(identity.user_id or "")
        if previous == identity:
            return
        for listener in list(self._listeners):
            try:
                listener(previous, identity)
            except Exception:
                logger.exception("Identity listener failed")

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def has_role(self, role: RoleArg) -> bool:
        """R: True iff the current role is the given role (or one of them)."""
        try:
            wanted = {_role_value(r) for r in _as_list(role)}
            identity = self.identity
            if not identity.is_authenticated:
                return UserRole.GUEST.value in wanted
            return identity.role.value in wanted
        except Exception:
            logger.exception("has_role failed")
            return False

    def has_permission(self, permission: PermissionArg) -> bool:
        """R: Admin holds everything; otherwise OR over the requested tokens."""
        try:
            identity = self.identity
            if not identity.is_authenticated:
                return False
            if identity.role == UserRole.ADMIN:
                return True
            for requested in _as_list(permission):
                parsed = parse_permission(requested)
                if parsed is not Permission.UNKNOWN and parsed in identity.permissions:
                    return True
            return False
        except Exception:
            logger.exception("has_permission failed")
            return False

    def can_access(self, resource: str, action: str, scope: str = "own") -> bool:
        """R: Scoped token first (resource.action.scope), then resource.action."""
        try:
            if self.has_role(UserRole.ADMIN):
                return True
            return self.has_permission(
                permission_token(resource, action, scope)
            ) or self.has_permission(permission_token(resource, action))
        except Exception:
            logger.exception("can_access failed")
            return False

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------

    @property
    def display_name(self) -> str:
        identity = self.identity
        if not identity.is_authenticated:
            return "Guest"
        return identity.username or identity.email or "User"

    @property
    def role_display_name(self) -> str:
        return ROLE_DISPLAY_NAMES.get(self.role, "User")

    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    def is_seller(self) -> bool:
        return self.has_role(UserRole.SELLER)

    def is_customer(self) -> bool:
        return self.has_role(UserRole.CUSTOMER)

    def is_delivery(self) -> bool:
        return self.has_role(UserRole.DELIVERY)

    def is_support(self) -> bool:
        return self.has_role(UserRole.SUPPORT)

    def is_finance(self) -> bool:
        return self.has_role(UserRole.FINANCE)

    def is_guest(self) -> bool:
        return not self.is_authenticated
