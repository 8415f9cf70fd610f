"""
Name: Session Context (ContextVars)

Responsibilities:
  - Store session-scoped data (session_id, user_id, operation)
  - Provide async-safe context without parameter passing
  - Enable structured logging with session correlation

Collaborators:
  - session.py: sets session_id at initialize()
  - identity.access_control: sets user_id on login/logout
  - application.cart.cart_store: sets operation around cart mutations
  - logger.py: reads context for log enrichment

Constraints:
  - Only primitive types (str) for safety
  - Default empty string (never None) for JSON serialization

Notes:
  - contextvars are copied into asyncio tasks, so background merges and
    interaction events keep the user_id they were started with
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

# R: Session identifier (UUID) - set when a StorefrontSession initializes
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

# R: Authenticated user id - empty for guests
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# R: Current operation name (e.g. "cart.add_item")
operation_var: ContextVar[str] = ContextVar("operation", default="")


def get_context_dict() -> dict:
    """
    R: Get current context as dict for log enrichment.

    Returns:
        Dict with non-empty context values only
    """
    ctx = {}

    if val := session_id_var.get():
        ctx["session_id"] = val
    if val := user_id_var.get():
        ctx["user_id"] = val
    if val := operation_var.get():
        ctx["operation"] = val

    return ctx


@contextmanager
def operation_scope(name: str) -> Iterator[None]:
    """R: Tag log lines emitted inside the block with an operation name."""
    token = operation_var.set(name)
    try:
        yield
    finally:
        operation_var.reset(token)


def clear_context() -> None:
    """R: Reset all context vars (called at session teardown)."""
    session_id_var.set("")
    user_id_var.set("")
    operation_var.set("")
