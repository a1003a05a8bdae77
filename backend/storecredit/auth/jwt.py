"""Access tokens.

Tokens are minted by the platform's login service with the shared
secret; this service verifies them.  `create_access_token` exists for
tests and local tooling.

Claims read here:
  sub          user id
  role         user role value
  permissions  effective permission strings (see auth/permissions.py)
  store_id     store the user works in, absent for platform admins
  type         must be "access"
  exp          expiry
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from storecredit.config import settings

ALGORITHM = settings.jwt_algorithm
TOKEN_TYPE = "access"


def create_access_token(
    user_id: str,
    role: str,
    permissions: list[str],
    store_id: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expires_at = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {
        "sub": user_id,
        "role": role,
        "permissions": sorted(permissions),
        "type": TOKEN_TYPE,
        "exp": expires_at,
    }
    if store_id:
        claims["store_id"] = store_id
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Verified claims, or {} for a bad signature, expiry or malformed token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}


def access_claims(token: str) -> dict | None:
    """Claims of a valid access token carrying a subject, else None."""
    claims = decode_token(token)
    if claims.get("type") != TOKEN_TYPE or not claims.get("sub"):
        return None
    return claims
