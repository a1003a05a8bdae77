"""Store context middleware: resolves the store scope from the JWT.

Flow:
  1. Extract Bearer token from Authorization header
  2. Decode JWT → get `store_id` claim
  3. Validate the id
  4. Set ContextVar so downstream code can read it
  5. After the response, clear the ContextVar

`get_current_store` re-derives the store from the user row and overwrites
the ContextVar, so a stale claim never widens access.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from storecredit.auth.jwt import access_claims
from storecredit.tenancy import (
    clear_store_context,
    set_current_store_id,
    validate_store_id,
)

# Routes that never require auth; don't reject expired tokens here
_PUBLIC_PREFIXES = ("/docs", "/openapi.json", "/health")


class StoreContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        auth_header = request.headers.get("authorization", "")
        path = request.url.path

        if auth_header.startswith("Bearer "):
            payload = access_claims(auth_header[7:])

            if payload is None:
                # Expired/malformed token on a protected route: 401 now,
                # before any handler runs.
                clear_store_context()
                if not any(path.startswith(p) for p in _PUBLIC_PREFIXES):
                    return JSONResponse(
                        status_code=401,
                        content={
                            "success": False,
                            "message": "Token expired or invalid",
                            "code": "HTTP_401",
                        },
                        headers={"WWW-Authenticate": "Bearer"},
                    )
            else:
                store_id = payload.get("store_id")
                if store_id:
                    try:
                        set_current_store_id(validate_store_id(store_id))
                    except ValueError:
                        clear_store_context()
                else:
                    clear_store_context()
        else:
            clear_store_context()

        try:
            response = await call_next(request)
        finally:
            clear_store_context()

        return response
