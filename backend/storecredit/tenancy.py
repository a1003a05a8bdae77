"""Multi-tenancy: row-level store isolation.

Key components:
  - _store_ctx       ContextVar holding the store id for the current request
  - set / get / clear helpers for the ContextVar
  - validate_store_id()   rejects malformed ids coming from token claims
"""

import re
from contextvars import ContextVar

from storecredit.middleware.exceptions import StoreContextError

# ── Request-scoped store context ────────────────────────────

_store_ctx: ContextVar[str | None] = ContextVar("_store_ctx", default=None)


def set_current_store_id(store_id: str) -> None:
    _store_ctx.set(store_id)


def get_current_store_id() -> str:
    """Return the current store id or raise if unset."""
    store_id = _store_ctx.get()
    if store_id is None:
        raise StoreContextError("No store context. This endpoint requires a store-scoped user")
    return store_id


def clear_store_context() -> None:
    _store_ctx.set(None)


# ── Validation ──────────────────────────────────────────────

_STORE_ID_RE = re.compile(r"^[A-Za-z0-9-]{1,36}$")


def validate_store_id(store_id: str) -> str:
    """Only allow uuid-like ids (letters, digits, dashes)."""
    if not isinstance(store_id, str) or not _STORE_ID_RE.match(store_id):
        raise ValueError(f"Invalid store id: {store_id!r}")
    return store_id
