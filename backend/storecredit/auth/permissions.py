"""Credit permissions.

Roles carry default permission sets; `User.custom_permissions` grants or
revokes individual ones ({"credit.limit": false}).  The effective list is
resolved when the token is minted and checked from the token claims.
"""

from __future__ import annotations

CREDIT_READ = "credit.read"      # history, store summary
CREDIT_WRITE = "credit.write"    # payments, adjustments
CREDIT_LIMIT = "credit.limit"    # change a customer's limit
CREDIT_AUDIT = "credit.audit"    # balance-vs-ledger audit

ALL_PERMISSIONS = frozenset({CREDIT_READ, CREDIT_WRITE, CREDIT_LIMIT, CREDIT_AUDIT})

ROLE_DEFAULTS: dict[str, frozenset[str]] = {
    "platform_admin": ALL_PERMISSIONS,
    "store_owner": ALL_PERMISSIONS,
    "store_manager": ALL_PERMISSIONS,
    "staff": frozenset({CREDIT_READ}),
}


def resolve_permissions(role: str, overrides: dict[str, bool] | None = None) -> list[str]:
    """Role defaults with per-user overrides applied, sorted.

    Unknown permission names in `overrides` are ignored.
    """
    overrides = {p: v for p, v in (overrides or {}).items() if p in ALL_PERMISSIONS}
    granted = {p for p, allowed in overrides.items() if allowed}
    revoked = {p for p, allowed in overrides.items() if not allowed}
    return sorted((ROLE_DEFAULTS.get(role, frozenset()) | granted) - revoked)


def missing_permissions(claimed: list[str], required: tuple[str, ...]) -> list[str]:
    return [p for p in required if p not in claimed]
