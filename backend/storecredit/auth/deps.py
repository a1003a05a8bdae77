"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user        → decode JWT, load user from DB, return User
  get_current_store       → load the user's active Store (or raise)
  require_role(...)       → restrict to specific roles
  require_permission(...) → restrict to specific granular permissions
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.auth.jwt import access_claims
from storecredit.auth.permissions import missing_permissions
from storecredit.database import get_db
from storecredit.middleware.exceptions import StoreContextError
from storecredit.models.store import Store
from storecredit.models.user import User, UserRole
from storecredit.tenancy import set_current_store_id

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# Roles allowed on the store-manager route group
STORE_MANAGER_ROLES = (
    UserRole.STORE_MANAGER,
    UserRole.STORE_OWNER,
    UserRole.PLATFORM_ADMIN,
)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, load the user, and return it.

    Also stashes the decoded payload on the user object as `_token_payload`
    so downstream deps can read claims (permissions) without re-decoding.
    """
    payload = access_claims(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    user._token_payload = payload  # type: ignore[attr-defined]
    return user


# ── Store context ───────────────────────────────────────────

async def get_current_store(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Store:
    """Return the active store the user works in.

    The store comes from the user row, not the token, so a user moved to
    another store loses access to the old one immediately.
    """
    if not user.store_id:
        raise StoreContextError("No store context. This endpoint requires a store-scoped user")

    result = await db.execute(select(Store).where(Store.id == user.store_id))
    store = result.scalar_one_or_none()
    if not store or not store.is_active:
        raise StoreContextError("Store not found or inactive")

    set_current_store_id(store.id)
    return store


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory: restrict to one or more roles.

    Usage:
        @router.get("/owners-only")
        async def owner_view(user: User = Depends(require_role(UserRole.STORE_OWNER))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        return user

    return _check


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: restrict to store-manager roles holding ALL
    listed permissions.

    Reads permissions from the JWT claims, so this is a zero-DB-hit check
    once the user is loaded.

    Usage:
        @router.post("/customers/{customer_id}/credit-payment")
        async def record_payment(user: User = Depends(require_permission("credit.write"))):
            ...
    """
    async def _check(
        user: User = Depends(require_role(*STORE_MANAGER_ROLES)),
    ) -> User:
        payload: dict = getattr(user, "_token_payload", {})
        user_perms: list[str] = payload.get("permissions", [])

        missing = missing_permissions(user_perms, perms)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return user

    return _check
