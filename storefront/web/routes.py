"""
Name: Storefront Routes (route gating over one session)

Responsibilities:
  - Expose login/signup/logout and the cart operations over HTTP
  - Gate checkout and dashboards with the guard decision table
  - Translate guard denials and cart errors into HTTP responses

Collaborators:
  - session.StorefrontSession (app.state.session)
  - identity.guards: evaluate_guard / evaluate_protected_route
  - application.dashboards.build_dashboard
  - web.error_responses: problem+json factories

Constraints:
  - Denials: REDIRECT -> 303 to the fallback, MESSAGE -> 403 problem body,
    HIDE -> 204 with no body
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field, field_validator

from ..application.cart import CartErrorCode, CartMutationResult
from ..application.dashboards import DASHBOARD_ROLES, build_dashboard
from ..identity.guards import (
    DenialMode,
    GuardDecision,
    evaluate_guard,
    evaluate_protected_route,
    require_auth,
)
from ..session import StorefrontSession
from .error_responses import (
    ErrorCode,
    empty_cart,
    forbidden,
    internal_error,
    not_found,
    problem_response,
    unauthorized,
    upstream_error,
)

router = APIRouter()


def get_storefront(request: Request) -> StorefrontSession:
    return request.app.state.session


# -----------------------------------------------------------------------------
# HTTP models
# -----------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=512)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class SignupRequest(LoginRequest):
    username: str = Field(..., min_length=1, max_length=120)


class CartView(BaseModel):
    state: str
    is_guest: bool
    items: dict[str, int]
    total_item_count: int
    total_amount: float


class IdentityView(BaseModel):
    authenticated: bool
    role: str
    role_display_name: str
    display_name: str
    cart: CartView


def _cart_view(session: StorefrontSession) -> CartView:
    cart = session.cart
    return CartView(
        state=cart.state.value,
        is_guest=cart.is_guest,
        items=cart.items,
        total_item_count=cart.total_item_count(),
        total_amount=cart.total_amount(),
    )


def _identity_view(session: StorefrontSession) -> IdentityView:
    access = session.access
    return IdentityView(
        authenticated=access.is_authenticated,
        role=access.role.value,
        role_display_name=access.role_display_name,
        display_name=access.display_name,
        cart=_cart_view(session),
    )


def denial_response(request: Request, decision: GuardDecision) -> Response:
    """Map a guard denial to exactly one HTTP outcome."""
    if decision.mode == DenialMode.REDIRECT:
        return RedirectResponse(decision.redirect_to, status_code=303)
    if decision.mode == DenialMode.MESSAGE:
        return problem_response(request, 403, ErrorCode.FORBIDDEN, decision.message)
    return Response(status_code=204)


def _mutation_view(session: StorefrontSession, result: CartMutationResult) -> CartView:
    if result.error is None:
        return _cart_view(session)
    if result.error.code == CartErrorCode.PRODUCT_NOT_FOUND:
        raise not_found("Product", result.product_id)
    if result.error.code == CartErrorCode.STORAGE_ERROR:
        raise internal_error(result.error.message)
    raise upstream_error(result.error.message)


# -----------------------------------------------------------------------------
# Identity
# -----------------------------------------------------------------------------


@router.post("/login", response_model=IdentityView, tags=["auth"])
async def login(req: LoginRequest, session: StorefrontSession = Depends(get_storefront)):
    result = await session.login(req.model_dump())
    if not result.success:
        raise unauthorized(result.error.message if result.error else "Login failed.")
    return _identity_view(session)


@router.post("/signup", response_model=IdentityView, tags=["auth"])
async def signup(req: SignupRequest, session: StorefrontSession = Depends(get_storefront)):
    result = await session.signup(req.model_dump())
    if not result.success:
        raise unauthorized(result.error.message if result.error else "Signup failed.")
    return _identity_view(session)


@router.post("/logout", response_model=IdentityView, tags=["auth"])
def logout(session: StorefrontSession = Depends(get_storefront)):
    session.logout()
    return _identity_view(session)


# -----------------------------------------------------------------------------
# Cart
# -----------------------------------------------------------------------------


@router.get("/cart", response_model=CartView, tags=["cart"])
async def get_cart(session: StorefrontSession = Depends(get_storefront)):
    await session.cart.wait_until_settled()
    return _cart_view(session)


@router.post("/cart/items/{product_id}", response_model=CartView, tags=["cart"])
async def add_cart_item(product_id: str, session: StorefrontSession = Depends(get_storefront)):
    result = await session.cart.add_item(product_id)
    return _mutation_view(session, result)


@router.delete("/cart/items/{product_id}", response_model=CartView, tags=["cart"])
async def remove_cart_item(
    product_id: str, session: StorefrontSession = Depends(get_storefront)
):
    result = await session.cart.remove_item(product_id)
    return _mutation_view(session, result)


@router.post("/checkout", tags=["cart"])
async def checkout(request: Request, session: StorefrontSession = Depends(get_storefront)):
    decision = evaluate_guard(session.access, require_auth())
    if not decision.allowed:
        return denial_response(request, decision)

    result = await session.checkout.sync_for_checkout()
    if result.error is not None:
        if result.error.code == CartErrorCode.EMPTY_CART:
            raise empty_cart(result.error.message)
        if result.error.code == CartErrorCode.NOT_AUTHENTICATED:
            raise unauthorized(result.error.message)
        raise upstream_error(result.error.message)
    return {"items": result.snapshot.as_items(), "cart": _cart_view(session).model_dump()}


# -----------------------------------------------------------------------------
# Dashboards
# -----------------------------------------------------------------------------


@router.get("/dashboard/{role}", tags=["dashboards"])
def dashboard(role: str, request: Request, session: StorefrontSession = Depends(get_storefront)):
    if role not in {r.value for r in DASHBOARD_ROLES}:
        raise not_found("Dashboard", role)
    decision = evaluate_protected_route(session.access, required_role=role)
    if not decision.allowed:
        return denial_response(request, decision)
    return {
        "role": role,
        "display_name": session.access.display_name,
        "sections": [s.to_dict() for s in build_dashboard(session.access)],
    }


@router.get("/403", tags=["dashboards"])
def forbidden_page():
    raise forbidden("You do not have permission to access this page")
