"""MindCoach — FastAPI Application Entry Point."""

import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from mindcoach.config import settings
from mindcoach.database import Base, engine
from mindcoach.middleware.cors import EmptyPreflightCORSMiddleware
from mindcoach.middleware.errors import register_error_handlers
from mindcoach.middleware.rate_limit import limiter
from mindcoach.models import KVEntry  # noqa: F401  (registers the table)
from mindcoach.routers import chat, coach, discover, orchestrate, resources, roadmap, search, visuals
from mindcoach.services.ai_client import ai_health_check, ai_provider_name

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create the key-value table on startup
Base.metadata.create_all(bind=engine)

# ── CORS origins from env ("*" for any) ──────────────────────────────────────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="MindCoach",
    description="AI learning coach: intent orchestration, roadmaps, resources and coached chat.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
app.include_router(chat.router)
app.include_router(orchestrate.router)
app.include_router(roadmap.router)
app.include_router(resources.router)
app.include_router(visuals.router)
app.include_router(discover.router)
app.include_router(search.router)
app.include_router(coach.router)


@app.on_event("startup")
async def on_startup():
    """Log the active AI provider."""
    provider = ai_provider_name()
    if provider == "none":
        print("\n" + "="*60)
        print("  ⚠  AI NOT CONFIGURED")
        print("  Set the Anthropic key in backend/.env:")
        print("    ANTHROPIC_API_KEY=sk-ant-...")
        print("    ANTHROPIC_MODEL=claude-3-5-haiku-20241022   (optional)")
        print("  Web search and resources also need EXA_API_KEY.")
        print("  Restart, then visit /api/health/ai to verify.")
        print("="*60 + "\n")
    else:
        print(f"\n  ✓  AI provider: {provider}\n")


@app.get("/")
def root():
    return {
        "name": "MindCoach API",
        "version": "1.0.0",
        "docs": "/docs",
        "ai_provider": ai_provider_name(),
    }


@app.get("/health")
def health():
    return {"status": "ok", "ai_provider": ai_provider_name()}


@app.get("/api/health/ai")
async def health_ai():
    """Live connectivity test for the configured AI provider.

    Returns:
        provider: which AI is active
        status:   "ok" | "error" | "unconfigured"
        test_reply / error: result of a tiny test call
    """
    return await ai_health_check()
