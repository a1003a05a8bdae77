from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storecredit.config import settings
from storecredit.middleware.exceptions import register_exception_handlers
from storecredit.middleware.rate_limit import RateLimitMiddleware
from storecredit.middleware.security import SecurityHeadersMiddleware
from storecredit.middleware.store_context import StoreContextMiddleware
from storecredit.routers import credit, health
from storecredit.services.scheduler import lifespan

app = FastAPI(
    title="StoreCredit",
    description="Customer store-credit ledger for pharmacy stores",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (the last one added runs first) ──────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    RateLimitMiddleware,
    default_limit=100,  # requests per minute per user / IP
    default_window=60,
    exempt_paths=["/health", "/health/ready", "/docs", "/openapi.json"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Store context (outermost - resolves the store before anything else)
app.add_middleware(StoreContextMiddleware)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(credit.router, prefix="/api/store-manager", tags=["credit"])
